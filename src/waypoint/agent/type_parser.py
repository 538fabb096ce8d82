"""
Typed response parsing.

Sends a context to the model and turns the free-form reply into a validated pydantic model, or
fails with a classified :class:`~waypoint.core.errors.WaypointError`.
"""

import logging
import re
from typing import (
    Type,
    TypeVar,
)

from pydantic import (
    BaseModel,
    ValidationError,
)

from waypoint.agent.providers import BaseProvider
from waypoint.config import settings
from waypoint.core.context import Context
from waypoint.core.errors import (
    EmptyResponseError,
    ParseResponseError,
    WaypointError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

_FENCE_OPEN = re.compile(r"^```[\w-]*\s*", re.MULTILINE)
_FENCE_CLOSE = re.compile(r"\s*```$", re.MULTILINE)


def normalize_json_reply(content: str) -> str:
    """
    Clean up a JSON reply returned by an LLM.

    Code fences are stripped and control characters (other than whitespace) removed.  The result
    must be a single object: anything before the opening brace or after the closing brace is
    treated as hallucinated prose and rejected with :class:`ParseResponseError`.
    """
    content = content.strip()
    if content.startswith("```"):
        content = _FENCE_OPEN.sub("", content).strip()
        content = _FENCE_CLOSE.sub("", content).strip()

    content = "".join(ch for ch in content if ch >= " " or ch in "\n\r\t")

    if not content.startswith("{"):
        raise ParseResponseError(
            "LLM returned invalid JSON: hallucinated preamble or natural language detected. "
            f"Response: {content}"
        )
    if not content.endswith("}"):
        raise ParseResponseError(
            "LLM returned invalid JSON: hallucinated postamble or missing closing brace detected. "
            f"Response: {content}"
        )
    return content


async def _complete_and_parse(
    provider: BaseProvider, context: Context, target: Type[T], temperature: float
) -> T:
    content = await provider.complete(context, temperature)
    logger.debug("Raw %s response: %s", target.__name__, content)

    if not content or not content.strip():
        raise EmptyResponseError(
            f"Received empty response from provider for: {context.last_user_message()}"
        )

    cleaned = normalize_json_reply(content)
    try:
        return target.model_validate_json(cleaned)
    except ValidationError as exc:
        raise ParseResponseError(f"Failed to parse response into {target.__name__}: {exc}") from exc


async def parse_response(
    provider: BaseProvider,
    context: Context,
    target: Type[T],
    *,
    retries: int | None = None,
    temperature: float | None = None,
) -> T:
    """
    Ask the model for the next reply to *context* and parse it into *target*.

    Parameters
    ----------
    provider:
        The model back-end.
    context:
        Conversation whose trailing message is the question to answer.  It is cloned, never
        mutated.
    target:
        The pydantic model to produce.  Its ``example_text`` (if any) is appended to the system
        message of the request.
    retries:
        Additional attempts after the first on empty or unparseable replies
        (default ``settings.PARSE_RETRIES``).  Other failures are never retried.
    temperature:
        Sampling temperature (default ``settings.PARSE_TEMPERATURE``).

    Raises
    ------
    EmptyResponseError, ParseResponseError
        When every attempt failed.
    """
    if retries is None:
        retries = settings.PARSE_RETRIES
    if temperature is None:
        temperature = settings.PARSE_TEMPERATURE

    working = context.clone()
    example_text = getattr(target, "example_text", None)
    if example_text:
        working.add_system_message(f"Example text for {target.__name__}:\n{example_text}")

    for attempt in range(retries + 1):
        try:
            return await _complete_and_parse(provider, working, target, temperature)
        except WaypointError as exc:
            if not exc.retryable or attempt >= retries:
                raise
            logger.info(
                "Retrying %s parse after %s (attempt %d/%d)",
                target.__name__,
                exc.code.value,
                attempt + 1,
                retries + 1,
            )

    raise AssertionError("unreachable")  # pragma: no cover
