"""Shared fakes for the test-suite: scripted model providers, a recording archive and tools."""

from typing import (
    Dict,
    List,
    Sequence,
    Tuple,
)

import pytest

from waypoint.agent.providers import BaseProvider
from waypoint.core.context import Context
from waypoint.core.schema import (
    PathInput,
    Snippet,
    ToolResult,
)
from waypoint.tools import (
    Tool,
    ToolRegistry,
)

OBJECTIVE = "objective"
SELECTION = "selection"
INPUT = "input"
PROGRESS = "progress"
ANSWER = "answer"

_MARKERS = (
    ("You are a goal planner", OBJECTIVE),
    ("You are a tool selection agent", SELECTION),
    ("You are an input generator", INPUT),
    ("evaluate whether the user's goal", PROGRESS),
)

_DEFAULTS = {
    OBJECTIVE: '{"take_action": false, "goal": "No further action required"}',
    SELECTION: '{"tool_name": "", "reasoning": "No further action required."}',
    INPUT: "{}",
    PROGRESS: '{"goal_achieved": false}',
}


class ScriptedProvider(BaseProvider):
    """Returns canned replies in order; the last reply repeats once the script runs out."""

    def __init__(self, replies: Sequence[str | Exception]) -> None:
        self.replies = list(replies)
        self.calls: List[Tuple[Context, float]] = []

    async def complete(self, context: Context, temperature: float) -> str:
        self.calls.append((context.clone(), temperature))
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


class PlannerProvider(BaseProvider):
    """
    Answers each planner sub-question from its own script.

    The kind of question is recognised from the system message; anything that is not one of the
    structured sub-questions gets the plain-text ``answer``.
    """

    def __init__(
        self,
        objective: Sequence[str] | str | None = None,
        selection: Sequence[str] | str | None = None,
        tool_input: Sequence[str] | str | None = None,
        progress: Sequence[str] | str | None = None,
        answer: str = "final answer",
    ) -> None:
        self.scripts: Dict[str, List[str]] = {}
        for kind, script in (
            (OBJECTIVE, objective),
            (SELECTION, selection),
            (INPUT, tool_input),
            (PROGRESS, progress),
        ):
            if script is None:
                script = [_DEFAULTS[kind]]
            elif isinstance(script, str):
                script = [script]
            self.scripts[kind] = list(script)
        self.answer = answer
        self.calls: List[Tuple[str, Context]] = []

    @staticmethod
    def classify(context: Context) -> str:
        system = context.system_message().content
        for marker, kind in _MARKERS:
            if marker in system:
                return kind
        return ANSWER

    async def complete(self, context: Context, temperature: float) -> str:
        kind = self.classify(context)
        self.calls.append((kind, context.clone()))
        if kind == ANSWER:
            return self.answer
        script = self.scripts[kind]
        return script.pop(0) if len(script) > 1 else script[0]

    def kinds(self) -> List[str]:
        return [kind for kind, _ in self.calls]

    def contexts(self, kind: str) -> List[Context]:
        return [ctx for k, ctx in self.calls if k == kind]


class RecordingArchive:
    """In-memory archive that remembers everything it is given."""

    def __init__(self) -> None:
        self.items: List[Snippet] = []

    def add_content(self, text: str, reference: str = "content") -> None:
        self.items.append(Snippet(reference, text))

    def query(self, text: str, k: int = 3) -> List[Snippet]:
        return [s for s in self.items if text.lower() in s.chunk.lower()][:k]


class EchoTool(Tool):
    """Reports the path it was given; counts its calls."""

    description = "Echoes the requested path."
    usage = "Provide a path."
    input_type = PathInput

    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self.calls: List[PathInput] = []

    async def invoke(self, tool_input: PathInput, context: Context) -> ToolResult:
        self.calls.append(tool_input)
        if not self.succeed:
            return ToolResult.failure(f"cannot read {tool_input.path}", context)
        context.add_snippet("echo", tool_input.path)
        return ToolResult.success(f"echo:{tool_input.path}", context)


def objective(goal: str = "list files") -> str:
    return f'{{"take_action": true, "goal": "{goal}"}}'


def select(name: str) -> str:
    return f'{{"tool_name": "{name}", "reasoning": "needed"}}'


def path_input(path: str) -> str:
    return f'{{"path": "{path}"}}'


def user_context(message: str = "List the files in ./src") -> Context:
    context = Context("You are a helpful assistant.")
    context.add_user_message(message)
    return context


@pytest.fixture
def archive() -> RecordingArchive:
    return RecordingArchive()


@pytest.fixture
def echo() -> EchoTool:
    return EchoTool()


@pytest.fixture
def registry(archive: RecordingArchive, echo: EchoTool) -> ToolRegistry:
    reg = ToolRegistry(archive=archive)
    reg.register("echo", echo)
    return reg
