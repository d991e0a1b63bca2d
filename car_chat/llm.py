"""LLM service: Guard, Extract and Format modes over one provider."""

import json
import re
from typing import Any

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from . import prompts
from .config import Settings, settings
from .exceptions import LLMUnavailable
from .models import CarShort, ExtractResult, GuardResult, SearchCriteria, SearchResult
from .providers import LLMProvider

MAX_FORMAT_ITEMS = 10
MAX_TITLE_LENGTH = 60

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


class JSONParseFailure(ValueError):
    """Model output could not be read as the expected JSON envelope."""


def parse_json_object(raw: str) -> dict[str, Any]:
    """Parse a JSON object out of model output.

    Tolerates markdown code fences and prose around the object.
    """
    text = _FENCE_RE.sub("", raw.strip()).strip()
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise JSONParseFailure("no JSON object in model output")
    try:
        data = json.loads(text[start : end + 1])
    except json.JSONDecodeError as e:
        raise JSONParseFailure(str(e)) from e
    if not isinstance(data, dict):
        raise JSONParseFailure("model output is not a JSON object")
    return data


def _describe_car(car: CarShort) -> str:
    return (
        f"- {car.brand} {car.model} {car.year}, {car.price} руб., {car.body_type.value}, "
        f"{car.engine_type.value}, {car.power_hp} л.с., {car.transmission.value}, {car.drive.value}"
    )


class LLMService:
    """Turns provider completions into typed results for the pipeline.

    Provider errors propagate unchanged; only parsing ambiguity in Guard and
    Extract is absorbed here.
    """

    def __init__(self, provider: LLMProvider, config: Settings | None = None) -> None:
        self.provider = provider
        self.config = config or settings

    async def guard(self, user_message: str) -> GuardResult:
        """Classify whether the message is about choosing a car."""
        response = await self.provider.chat(
            prompts.GUARD_SYSTEM_PROMPT, user_message, self.config.guard_temperature
        )
        try:
            result = GuardResult.model_validate(parse_json_object(response.content))
        except (JSONParseFailure, PydanticValidationError) as e:
            # Fail open so a malformed answer never blocks a legitimate request.
            logger.warning(f"Guard output unparseable, treating as relevant: {e}")
            return GuardResult(relevant=True)

        if not result.relevant and not (result.rejection_response or "").strip():
            return GuardResult(relevant=False, rejection_response=prompts.DEFAULT_REJECTION)
        return result

    async def extract(self, user_message: str) -> ExtractResult:
        """Extract search criteria and decide whether a search may run."""
        response = await self.provider.chat(
            prompts.EXTRACT_SYSTEM_PROMPT, user_message, self.config.extract_temperature
        )
        try:
            data = parse_json_object(response.content)
            criteria_data = data.get("criteria")
            criteria = (
                SearchCriteria.model_validate(criteria_data)
                if isinstance(criteria_data, dict)
                else None
            )
        except (JSONParseFailure, PydanticValidationError) as e:
            logger.warning(f"Extract output unparseable, asking for clarification: {e}")
            return ExtractResult(
                ready_to_search=False, clarification_question=prompts.DEFAULT_CLARIFICATION
            )

        question = data.get("clarificationQuestion")
        question = question.strip() if isinstance(question, str) and question.strip() else None
        summary = data.get("extractedSummary")
        summary = summary if isinstance(summary, str) else None

        # The readiness rule is decided here, never taken from the model's flag.
        if criteria is not None and criteria.is_searchable():
            return ExtractResult(
                ready_to_search=True,
                criteria=criteria,
                clarification_question=None,
                extracted_summary=summary,
            )

        if data.get("readyToSearch") is True:
            logger.info("Model claimed readiness without enough criteria, asking for more")
        return ExtractResult(
            ready_to_search=False,
            criteria=criteria,
            clarification_question=question or prompts.DEFAULT_CLARIFICATION,
            extracted_summary=summary,
        )

    async def format(self, criteria_summary: str, result: SearchResult) -> str:
        """Write the natural-language answer for a search result."""
        items = result.items[:MAX_FORMAT_ITEMS]
        if result.count == 0 or not items:
            system_prompt = prompts.FORMAT_EMPTY_SYSTEM_PROMPT
            user_message = f"Критерии поиска: {criteria_summary}\nВсего найдено: 0"
        else:
            system_prompt = prompts.FORMAT_SYSTEM_PROMPT
            user_message = prompts.FORMAT_USER_TEMPLATE.format(
                criteria=criteria_summary,
                count=result.count,
                shown=len(items),
                items="\n".join(_describe_car(car) for car in items),
            )

        response = await self.provider.chat(
            system_prompt, user_message, self.config.format_temperature
        )
        text = response.content.strip()
        if not text:
            raise LLMUnavailable("Format step produced empty text")
        return text

    async def generate_title(self, first_message: str) -> str | None:
        """Generate a short chat title. Failures are logged, never raised."""
        try:
            response = await self.provider.chat(
                prompts.TITLE_SYSTEM_PROMPT, first_message, self.config.title_temperature
            )
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Title generation failed: {e}")
            return None

        title = response.content.strip().strip("\"'«»").strip()
        if not title:
            return None
        return title[:MAX_TITLE_LENGTH].rstrip()
