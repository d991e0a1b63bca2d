"""Data models using Pydantic."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from .config import settings


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys, populated by either form."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class BodyType(str, Enum):
    SEDAN = "sedan"
    SUV = "suv"
    HATCHBACK = "hatchback"
    WAGON = "wagon"
    MINIVAN = "minivan"
    COUPE = "coupe"
    PICKUP = "pickup"


class EngineType(str, Enum):
    PETROL = "petrol"
    DIESEL = "diesel"
    HYBRID = "hybrid"
    ELECTRIC = "electric"


class Transmission(str, Enum):
    MANUAL = "manual"
    AUTOMATIC = "automatic"
    ROBOT = "robot"
    CVT = "cvt"


class DriveType(str, Enum):
    FWD = "fwd"
    RWD = "rwd"
    AWD = "awd"


class Chat(CamelModel):
    """A conversation owned by one user."""

    id: str
    user_id: str
    title: str | None = None
    created_at: datetime
    updated_at: datetime


class ChatMessage(CamelModel):
    """A persisted chat message. Immutable once stored."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    chat_id: str
    role: MessageRole
    content: str
    created_at: datetime


class CreateChatRequest(CamelModel):
    title: str | None = Field(None, max_length=255)


class SendMessageRequest(CamelModel):
    """Input message from user."""

    content: str

    @field_validator("content", mode="before")
    @classmethod
    def validate_content(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise PydanticCustomError(
                "empty_content", "Message content cannot be empty", {"input": value}
            )
        value = value.strip()
        if len(value) > settings.max_message_length:
            raise PydanticCustomError(
                "content_too_long",
                "Message is too long (max {max_length} characters)",
                {"length": len(value), "max_length": settings.max_message_length},
            )
        return value


class SendMessageResponse(CamelModel):
    user_message: ChatMessage
    stream_url: str


# Fields that count towards the readiness rule besides the price ceiling.
EXTRA_CRITERIA_FIELDS = (
    "body_type",
    "engine_type",
    "brand",
    "seats",
    "transmission",
    "drive",
    "year_min",
    "year_max",
)
MIN_EXTRA_CRITERIA = 2


class SearchCriteria(CamelModel):
    """Catalog filters extracted from free text.

    Values the model invents outside the known vocabularies are dropped
    rather than failing the whole extraction.
    """

    price_max: int | None = None
    price_min: int | None = None
    body_type: BodyType | None = None
    engine_type: EngineType | None = None
    brand: str | None = None
    seats: int | None = None
    transmission: Transmission | None = None
    drive: DriveType | None = None
    year_min: int | None = None
    year_max: int | None = None

    @field_validator("body_type", "engine_type", "transmission", "drive", mode="before")
    @classmethod
    def lenient_enum(cls, value: Any, info: ValidationInfo) -> Any:
        if not isinstance(value, str):
            return None
        value = value.strip().lower()
        known = {member.value for member in _ENUM_FIELDS[info.field_name]}
        return value if value in known else None

    @field_validator("price_max", "price_min", "seats", "year_min", "year_max", mode="before")
    @classmethod
    def lenient_int(cls, value: Any) -> int | None:
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, int | float):
            return int(value)
        if isinstance(value, str):
            digits = value.replace(" ", "").replace("\u00a0", "").replace("_", "")
            return int(digits) if digits.isdigit() else None
        return None

    @field_validator("brand", mode="before")
    @classmethod
    def blank_brand(cls, value: Any) -> str | None:
        if not isinstance(value, str) or not value.strip():
            return None
        return value.strip()

    def extra_criteria_count(self) -> int:
        return sum(1 for name in EXTRA_CRITERIA_FIELDS if getattr(self, name) is not None)

    def is_searchable(self) -> bool:
        """Readiness rule: a price ceiling plus at least two other filters."""
        return self.price_max is not None and self.extra_criteria_count() >= MIN_EXTRA_CRITERIA

    def summary(self) -> str:
        """Human readable one-liner used in the Format prompt."""
        parts = [
            f"{to_camel(name)}={value.value if isinstance(value, Enum) else value}"
            for name, value in self.model_dump().items()
            if value is not None
        ]
        return ", ".join(parts) if parts else "no filters"


_ENUM_FIELDS: dict[str, type[Enum]] = {
    "body_type": BodyType,
    "engine_type": EngineType,
    "transmission": Transmission,
    "drive": DriveType,
}


class GuardResult(CamelModel):
    relevant: bool = True
    rejection_response: str | None = None


class ExtractResult(CamelModel):
    """Outcome of the Extract step, alive only for one orchestration run."""

    ready_to_search: bool = False
    criteria: SearchCriteria | None = None
    clarification_question: str | None = None
    extracted_summary: str | None = None

    @model_validator(mode="after")
    def check_readiness(self) -> "ExtractResult":
        if self.ready_to_search:
            if self.criteria is None or not self.criteria.is_searchable():
                raise ValueError("ready_to_search requires criteria satisfying the readiness rule")
        elif not self.clarification_question:
            raise ValueError("clarification_question is required when not ready to search")
        return self


class CarShort(CamelModel):
    """Short car record handed to the Format step."""

    id: str
    brand: str
    model: str
    year: int
    price: int
    body_type: BodyType
    engine_type: EngineType
    power_hp: int
    transmission: Transmission
    drive: DriveType


class SearchResult(CamelModel):
    count: int
    items: list[CarShort] = Field(default_factory=list)
