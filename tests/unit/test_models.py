"""Tests for request models and the search readiness rule."""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from car_chat.models import (
    BodyType,
    ChatMessage,
    DriveType,
    ExtractResult,
    MessageRole,
    SearchCriteria,
    SendMessageRequest,
    SendMessageResponse,
)


class TestSearchCriteria:
    def test_camel_case_input(self) -> None:
        criteria = SearchCriteria.model_validate(
            {"priceMax": 3000000, "bodyType": "SUV", "yearMin": "2020", "drive": "awd"}
        )

        assert criteria.price_max == 3000000
        assert criteria.body_type == BodyType.SUV
        assert criteria.year_min == 2020
        assert criteria.drive == DriveType.AWD

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("3 000 000", 3000000), ("3\u00a0000\u00a0000", 3000000), ("3_000_000", 3000000),
         (2500000.0, 2500000), ("около трёх", None), (True, None)],
    )
    def test_lenient_numbers(self, raw, expected) -> None:
        assert SearchCriteria(price_max=raw).price_max == expected

    def test_unknown_enum_dropped(self) -> None:
        assert SearchCriteria(body_type="limousine").body_type is None

    def test_blank_brand(self) -> None:
        assert SearchCriteria(brand="  ").brand is None

    @pytest.mark.parametrize(
        ("fields", "searchable"),
        [
            ({"price_max": 3000000, "body_type": "suv", "engine_type": "petrol"}, True),
            ({"price_max": 3000000, "brand": "Kia", "seats": 5}, True),
            ({"price_max": 3000000, "body_type": "suv"}, False),
            ({"body_type": "suv", "engine_type": "petrol", "transmission": "automatic"}, False),
            ({"price_max": 3000000, "price_min": 1000000, "body_type": "suv"}, False),
            ({}, False),
        ],
    )
    def test_readiness_rule(self, fields: dict, searchable: bool) -> None:
        assert SearchCriteria(**fields).is_searchable() is searchable

    def test_summary(self) -> None:
        criteria = SearchCriteria(price_max=3000000, body_type="suv")

        assert criteria.summary() == "priceMax=3000000, bodyType=suv"
        assert SearchCriteria().summary() == "no filters"


class TestExtractResult:
    def test_ready_requires_searchable_criteria(self) -> None:
        with pytest.raises(ValidationError):
            ExtractResult(ready_to_search=True, criteria=SearchCriteria(price_max=1))

    def test_not_ready_requires_question(self) -> None:
        with pytest.raises(ValidationError):
            ExtractResult(ready_to_search=False)

    def test_valid_states(self) -> None:
        criteria = SearchCriteria(price_max=1, body_type="suv", seats=5)

        assert ExtractResult(ready_to_search=True, criteria=criteria).ready_to_search
        assert ExtractResult(clarification_question="Бюджет?").clarification_question


class TestSendMessageRequest:
    def test_content_is_stripped(self) -> None:
        assert SendMessageRequest(content="  хочу машину ").content == "хочу машину"

    @pytest.mark.parametrize("content", ["", "   ", None])
    def test_empty_rejected(self, content) -> None:
        with pytest.raises(ValidationError, match="empty"):
            SendMessageRequest(content=content)

    def test_too_long_rejected(self) -> None:
        with pytest.raises(ValidationError, match="too long"):
            SendMessageRequest(content="а" * 4001)

    def test_max_length_accepted(self) -> None:
        assert len(SendMessageRequest(content="а" * 4000).content) == 4000


def test_message_is_immutable() -> None:
    message = ChatMessage(
        id="m1", chat_id="c1", role=MessageRole.USER, content="hi", created_at=datetime.now(UTC)
    )

    with pytest.raises(ValidationError):
        message.content = "changed"


def test_send_message_response_uses_camel_case() -> None:
    message = ChatMessage(
        id="m1", chat_id="c1", role="user", content="hi", created_at=datetime.now(UTC)
    )
    data = SendMessageResponse(user_message=message, stream_url="/x").model_dump(by_alias=True)

    assert set(data) == {"userMessage", "streamUrl"}
    assert data["userMessage"]["chatId"] == "c1"
