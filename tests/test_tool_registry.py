"""
Basic sanity tests for the tool registry.

Run with:
$ pytest -q
"""

import asyncio

import pytest
from conftest import (
    EchoTool,
    RecordingArchive,
)

from waypoint.core.context import Context
from waypoint.core.schema import (
    NoInput,
    PathInput,
    ToolResult,
)
from waypoint.tools import ToolRegistry


class _RaisingTool(EchoTool):
    async def invoke(self, tool_input, context):  # type: ignore[override]
        raise RuntimeError("disk on fire")


class _SilentTool(EchoTool):
    async def invoke(self, tool_input, context):  # type: ignore[override]
        return None


class _ContextlessTool(EchoTool):
    async def invoke(self, tool_input, context):  # type: ignore[override]
        return ToolResult(succeeded=True, response="ok", context=None)  # type: ignore[arg-type]


class _BrokenArchive:
    def add_content(self, text: str, reference: str = "content") -> None:
        raise ConnectionError("vector store down")

    def query(self, text: str, k: int = 3) -> list:
        return []


@pytest.fixture
def math_registry(archive: RecordingArchive) -> ToolRegistry:
    reg = ToolRegistry(archive=archive)

    # This is a stub tool for testing purposes.
    @reg.tool("add")
    def _add(a: int, b: int) -> int:
        """Return the sum of two integers (used only for tests)."""
        return a + b

    return reg


def test_invoke_function_tool_success(
    math_registry: ToolRegistry, archive: RecordingArchive
) -> None:
    """Registry should return the tool's value and archive it under name + canonical input."""
    context = Context()

    result = asyncio.run(math_registry.invoke("add", {"b": 3, "a": 2}, context))

    assert result.succeeded
    assert result.response == "5"
    assert result.context is context
    assert archive.items[0].reference == 'add({"a":2,"b":3})'
    assert archive.items[0].chunk == "5"


def test_invoke_missing_tool(math_registry: ToolRegistry) -> None:
    """Registry should report an unknown tool without raising."""
    result = asyncio.run(math_registry.invoke("not_a_tool", {}, Context()))

    assert not result.succeeded
    assert "not_a_tool" in result.error
    assert result.response.startswith("ERROR: ")


def test_invoke_bad_args(math_registry: ToolRegistry) -> None:
    """Registry should report input that does not match the tool's shape."""
    result = asyncio.run(math_registry.invoke("add", {"a": 2}, Context()))  # missing 'b'

    assert not result.succeeded
    assert "Invalid input" in result.error


def test_invoke_null_input(registry: ToolRegistry, echo: EchoTool) -> None:
    """A null input never reaches the tool."""
    result = asyncio.run(registry.invoke("echo", None, Context()))

    assert not result.succeeded
    assert "received null" in result.error
    assert echo.calls == []


def test_raising_and_silent_tools_become_failures(archive: RecordingArchive) -> None:
    """Exceptions and null results are converted to failure results."""
    reg = ToolRegistry(archive=archive)
    reg.register("boom", _RaisingTool())
    reg.register("silent", _SilentTool())

    boom = asyncio.run(reg.invoke("boom", PathInput(path="x"), Context()))
    silent = asyncio.run(reg.invoke("silent", PathInput(path="x"), Context()))

    assert "disk on fire" in boom.error
    assert "returned null result" in silent.error
    assert archive.items == []
    assert reg.invocations == 2


def test_tool_reported_failure_is_passed_through(archive: RecordingArchive) -> None:
    """A tool's own failure keeps its error text and is not archived."""
    reg = ToolRegistry(archive=archive)
    reg.register("echo", EchoTool(succeed=False))

    result = asyncio.run(reg.invoke("echo", PathInput(path="x"), Context()))

    assert result == ToolResult.failure("cannot read x", result.context)
    assert archive.items == []


def test_archive_failure_does_not_fail_the_call() -> None:
    """Archiving is fire-and-forget."""
    reg = ToolRegistry(archive=_BrokenArchive())
    reg.register("echo", EchoTool())

    result = asyncio.run(reg.invoke("echo", PathInput(path="x"), Context()))

    assert result.succeeded


def test_registration_lifecycle(registry: ToolRegistry) -> None:
    """Tools can be added and removed at runtime; names are unique."""
    with pytest.raises(ValueError):
        registry.register("echo", EchoTool())

    registry.register("echo2", EchoTool())
    assert registry.is_registered("echo2")
    assert "echo2" in registry
    assert registry.unregister("echo2")
    assert not registry.unregister("echo2")
    assert not registry.is_registered("echo2")
    assert not registry.is_registered("")
    assert registry.names() == ["echo"]


def test_describe_lists_input_type_and_usage(math_registry: ToolRegistry) -> None:
    """Menu blocks carry everything the selection prompt needs."""
    (block,) = math_registry.describe()

    assert block.startswith("--- Name: add ---")
    assert "InputType: AddInput" in block
    assert "Description: Return the sum of two integers" in block
    assert "Usage: add(a: int, b: int)" in block
    assert block.endswith("--- end add ---")
    assert math_registry.registered_tools()[0][0] == "add"


def test_parameterless_function_uses_no_input() -> None:
    """A function without parameters declares the NoInput shape."""
    reg = ToolRegistry()

    @reg.tool("now")
    def _now() -> str:
        """Return a fixed time."""
        return "noon"

    assert reg.get("now").input_type is NoInput
    assert asyncio.run(reg.invoke("now", NoInput(), Context())).response == "noon"


def test_missing_result_context_falls_back_to_callers(archive: RecordingArchive) -> None:
    """A successful result without a context hands back the caller's context."""
    reg = ToolRegistry(archive=archive)
    reg.register("loose", _ContextlessTool())
    context = Context()

    result = asyncio.run(reg.invoke("loose", PathInput(path="x"), context))

    assert result.succeeded
    assert result.context is context
    assert archive.items[0].chunk == "ok"


def test_function_returning_none_is_a_failure(archive: RecordingArchive) -> None:
    """A null return from a plain function is not reported as the text 'None'."""
    reg = ToolRegistry(archive=archive)

    @reg.tool("nothing")
    def _nothing() -> None:
        """Return nothing at all."""

    result = asyncio.run(reg.invoke("nothing", NoInput(), Context()))

    assert not result.succeeded
    assert "returned null result" in result.error
    assert archive.items == []
