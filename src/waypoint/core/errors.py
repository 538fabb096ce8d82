"""
Error taxonomy shared by the parser, the tool registry and the planner.

Every error raised inside Waypoint is a :class:`WaypointError` carrying an :class:`ErrorCode`, so
callers can decide what to retry by looking at the code rather than the concrete class.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Classification of a failure."""

    UNKNOWN = "unknown"
    # Parser layer (retryable)
    EMPTY_RESPONSE = "empty_response"
    FAILED_TO_PARSE_RESPONSE = "failed_to_parse_response"
    # Registry layer (reported as data, never raised across the registry)
    TOOL_NOT_AVAILABLE = "tool_not_available"
    INVALID_INPUT = "invalid_input"
    TOOL_FAILED = "tool_failed"
    # Planner layer
    PLANNING_FAILED = "planning_failed"
    # Model transport
    PROVIDER_ERROR = "provider_error"


RETRYABLE_CODES = frozenset({ErrorCode.EMPTY_RESPONSE, ErrorCode.FAILED_TO_PARSE_RESPONSE})


class WaypointError(RuntimeError):
    """Base class for all Waypoint failures."""

    code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(self, message: str, code: ErrorCode | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code

    @property
    def retryable(self) -> bool:
        """True if the failed request may be repeated as-is."""
        return self.code in RETRYABLE_CODES


class EmptyResponseError(WaypointError):
    """Raised when the model returns nothing."""

    code = ErrorCode.EMPTY_RESPONSE


class ParseResponseError(WaypointError):
    """Raised when the model reply is not a JSON object of the requested shape."""

    code = ErrorCode.FAILED_TO_PARSE_RESPONSE


class ProviderError(WaypointError):
    """Raised when a model provider cannot be reached or answers with an error."""

    code = ErrorCode.PROVIDER_ERROR


class ToolExecutionError(WaypointError):
    """Raised when a requested tool cannot run or fails."""

    code = ErrorCode.TOOL_FAILED


class PlanningFailedError(WaypointError):
    """Raised when the planner cannot produce a valid next step."""

    code = ErrorCode.PLANNING_FAILED
