"""
Schema definitions for planner <-> parser <-> tool messages.

These data models serve as the contract between the model, the planner loop and individual tools.
We keep them separate from runtime logic so they can be imported anywhere without side-effects.

Any model with an ``example_text`` class attribute carries formatting guidance that the typed
parser shows to the model before asking for that shape.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    ClassVar,
    NamedTuple,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

if TYPE_CHECKING:
    from waypoint.core.context import Context

NO_ACTION_REQUIRED = "No further action required"


# ---------------------------------------------------------------------------
# Conversation records
# ---------------------------------------------------------------------------
class Role(str, Enum):
    """Author of a chat message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ChatMessage(BaseModel):
    """A single message in a conversation. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str = ""
    created_at: datetime = Field(default_factory=datetime.now)


class Snippet(NamedTuple):
    """A retrieval snippet: where the text came from, and the text itself."""

    reference: str
    chunk: str


# ---------------------------------------------------------------------------
# Parse targets
# ---------------------------------------------------------------------------
class ParsedModel(BaseModel):
    """Base for every shape the model is asked to produce."""

    example_text: ClassVar[str | None] = None


class NoInput(ParsedModel):
    """Input shape for tools that take no arguments."""

    example_text: ClassVar[str | None] = "{}"


class PathInput(ParsedModel):
    """A single filesystem path."""

    example_text: ClassVar[str | None] = """\
{ "path": "<path_to_file_or_directory>" }

Where <path_to_file_or_directory> is either a full, or a relative path to a file on the local \
filesystem. If the path is empty, the current working directory will be used.
"""

    path: str = ""


class PathAndPatternInput(ParsedModel):
    """A filesystem path plus a regular expression."""

    example_text: ClassVar[str | None] = """\
{ "path": "<path_to_file_or_directory>", "pattern": "<regex_pattern>" }

Where
<path_to_file_or_directory> is either a full, or a relative path to a directory on the local \
filesystem. If the path is empty, the current working directory will be used.
<regex_pattern> is a valid Python regular expression.
"""

    path: str = ""
    pattern: str = ""


class ToolSelection(ParsedModel):
    """The model's choice of the next tool; an empty name means stop."""

    example_text: ClassVar[str | None] = """\
Respond with **only** one of the following JSON options:

If no further action is needed:

{ "tool_name": "", "reasoning": "No further action required." }

If a tool should be used:

{ "tool_name": "<tool_name>", "reasoning": "<reasoning>" }

Where:
- `<tool_name>` is the exact name of the tool to use
- `<reasoning>` is a brief explanation of why this tool was selected

**Important:**
- Your output will be parsed as JSON. Do NOT include markdown, commentary, or explanations.
- Respond with ONLY the JSON object.
"""

    tool_name: str = ""
    reasoning: str = ""

    @field_validator("tool_name", "reasoning", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        # A null tool name means the same as an empty one: stop.
        return "" if value is None else value


class PlanProgress(ParsedModel):
    """Whether the goal has been reached."""

    example_text: ClassVar[str | None] = """\
If a meaningful and useful response can be generated from context obtained from previous steps, \
respond with:

{ "goal_achieved": true }

If action is required to achieve the goal, respond with:

{ "goal_achieved": false }

**Important:**
- Your output will be parsed as JSON. Do NOT include markdown, commentary, or explanations.
- Respond with ONLY the JSON object.
"""

    goal_achieved: bool = False


class PlanObjective(ParsedModel):
    """Whether the latest user turn needs action, and what that action should achieve."""

    example_text: ClassVar[str | None] = """\
If a meaningful and useful static response can be generated from existing knowledge, respond with:

{ "take_action": false, "goal": "<reason>" }

If action is required, respond with:

{ "take_action": true, "goal": "<goal>" }

Where:
  * <goal> is a statement of what the user is trying to achieve, e.g., "Summarize the repo \
contents" or "Help me plan a trip to Paris".
  * <reason> is a statement of why no action is required.

At this point, you don't need to know how to achieve the goal, just clearly state the goal as you \
understand it, so that you can plan the steps to achieve it later.
Only respond with the JSON object, do not include any additional text or explanation.
"""

    take_action: bool = False
    goal: str = ""

    def requires_action(self) -> bool:
        """True unless the objective is a no-op (explicitly, or by an empty/placeholder goal)."""
        goal = self.goal.strip()
        if not self.take_action or not goal:
            return False
        return goal.rstrip(".").lower() != NO_ACTION_REQUIRED.lower()


# ---------------------------------------------------------------------------
# Planner / tool records
# ---------------------------------------------------------------------------
class PlanStep(BaseModel):
    """One decision cycle: either "stop" or "run tool X with input Y"."""

    done: bool
    tool_name: str = ""
    tool_input: Any = None
    reason: str = ""

    @classmethod
    def complete(cls, reason: str) -> "PlanStep":
        """A terminal step."""
        return cls(done=True, tool_name="", tool_input=NoInput(), reason=reason)

    @classmethod
    def run(cls, tool_name: str, tool_input: Any, reason: str) -> "PlanStep":
        """A step that executes *tool_name* with *tool_input*."""
        return cls(done=False, tool_name=tool_name, tool_input=tool_input, reason=reason)

    @property
    def key(self) -> str:
        """De-duplication key: tool name plus canonical input."""
        return f"{self.tool_name}:{canonical_json(self.tool_input)}"


@dataclass(frozen=True)
class ToolResult:
    """Outcome of a tool call, plus the context the caller should adopt."""

    succeeded: bool
    response: str
    context: "Context"
    error: str | None = None

    @classmethod
    def success(cls, response: str, context: "Context") -> "ToolResult":
        return cls(succeeded=True, response=response, context=context)

    @classmethod
    def failure(cls, error: str, context: "Context") -> "ToolResult":
        return cls(succeeded=False, response=f"ERROR: {error}", context=context, error=error)


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------
def canonical_json(value: Any) -> str:
    """
    Serialize *value* deterministically.

    Models are dumped in JSON mode, mapping keys are sorted and separators are compact, so two
    structurally equal inputs always produce the same string regardless of field order.
    """
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
