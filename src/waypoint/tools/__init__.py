"""
Tool registry for Waypoint.

A tool is a named capability with a description, a usage hint and a declared input shape (a
pydantic model).  Tools are registered on a :class:`ToolRegistry` instance, which is handed to the
planner; every call goes through :meth:`ToolRegistry.invoke`, which never raises.

Plain functions can be registered with the :meth:`ToolRegistry.tool` decorator:

    registry = ToolRegistry()

    @registry.tool("add")
    def add(a: int, b: int) -> int:
        \"\"\"Return the sum of two integers.\"\"\"
        return a + b

Their input shape is derived from the function signature.
"""

import inspect
import logging
from dataclasses import replace
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Tuple,
    Type,
    get_type_hints,
)

from pydantic import (
    BaseModel,
    ValidationError,
    create_model,
)

from waypoint.core.context import Context
from waypoint.core.errors import (
    ErrorCode,
    ToolExecutionError,
)
from waypoint.core.schema import (
    NoInput,
    ToolResult,
    canonical_json,
)
from waypoint.memory.archive import (
    NullArchive,
    RetrievalArchive,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool contract
# ---------------------------------------------------------------------------
class Tool(ABC):
    """A capability the planner can invoke."""

    description: str = ""
    usage: str = ""  # Example: "Provide a directory path to list files from."
    input_type: Type[BaseModel] = NoInput

    @abstractmethod
    async def invoke(self, tool_input: Any, context: Context) -> ToolResult:
        """Run the tool and return its result plus the context the caller should adopt."""


class FunctionTool(Tool):
    """Adapts a plain (sync or async) function to the :class:`Tool` contract."""

    def __init__(self, name: str, fn: Callable[..., Any]) -> None:
        self.name = name
        self.fn = fn
        self.description = inspect.getdoc(fn) or ""
        self.input_type, self.usage = self._describe_signature(name, fn)

    @staticmethod
    def _describe_signature(name: str, fn: Callable[..., Any]) -> Tuple[Type[BaseModel], str]:
        """Build an input model and a usage string from *fn*'s parameters."""
        sig = inspect.signature(fn)
        type_hints = get_type_hints(fn)
        fields: Dict[str, Any] = {}
        params: List[str] = []
        for param_name, param in sig.parameters.items():
            param_type = type_hints.get(param_name, Any)
            default = ... if param.default is inspect.Parameter.empty else param.default
            fields[param_name] = (param_type, default)
            params.append(f"{param_name}: {getattr(param_type, '__name__', str(param_type))}")

        usage = f"{name}({', '.join(params)})"
        if not fields:
            return NoInput, usage
        model_name = "".join(part.title() for part in name.split("_")) + "Input"
        return create_model(model_name, **fields), usage

    async def invoke(self, tool_input: Any, context: Context) -> ToolResult:
        kwargs = tool_input.model_dump() if isinstance(tool_input, BaseModel) else dict(tool_input)
        try:
            logger.debug("Executing tool '%s' with args=%s", self.name, kwargs)
            result = self.fn(**kwargs)
            if inspect.isawaitable(result):
                result = await result
        except TypeError as exc:
            # Argument mismatch - give the caller a clean exception.
            raise ToolExecutionError(
                f"Invalid arguments for tool '{self.name}': {exc}", ErrorCode.INVALID_INPUT
            ) from exc
        if result is None:
            return ToolResult.failure(f"Tool '{self.name}' returned null result.", context)
        return ToolResult.success(str(result), context)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------
class ToolRegistry:
    """Name-keyed directory of tools and the single invocation choke point."""

    def __init__(self, archive: RetrievalArchive | None = None) -> None:
        self._tools: Dict[str, Tool] = {}
        self.archive: RetrievalArchive = archive if archive is not None else NullArchive()
        self.invocations = 0

    # ------------------------------------------------------------------ #
    # Registration
    # ------------------------------------------------------------------ #
    def register(self, name: str, tool: Tool) -> Tool:
        """
        Register *tool* under *name*.

        Raises
        ------
        ValueError
            If the name is empty or already registered.
        """
        if not name:
            raise ValueError("Tool name must not be empty.")
        if name in self._tools:
            raise ValueError(f"Tool '{name}' is already registered.")
        logger.debug("Registering tool '%s'", name)
        self._tools[name] = tool
        return tool

    def unregister(self, name: str) -> bool:
        """Remove *name*; returns False if it was not registered."""
        removed = self._tools.pop(name, None)
        if removed is not None:
            logger.debug("Unregistered tool '%s'", name)
        return removed is not None

    def tool(self, name: str) -> Callable:
        """Decorator registering a plain function as a tool under *name*."""

        def wrapper(fn: Callable) -> Callable:
            self.register(name, FunctionTool(name, fn))
            return fn

        return wrapper

    # ------------------------------------------------------------------ #
    # Lookup
    # ------------------------------------------------------------------ #
    def is_registered(self, name: str) -> bool:
        return bool(name) and name in self._tools

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools)

    def registered_tools(self) -> List[Tuple[str, str, str]]:
        """(name, description, usage) for every registered tool."""
        return [(name, t.description, t.usage) for name, t in self._tools.items()]

    def describe(self) -> List[str]:
        """One menu block per tool, used to build the tool-selection prompt."""
        return [
            f"--- Name: {name} ---\n"
            f"InputType: {t.input_type.__name__}\n"
            f"Description: {t.description}\n"
            f"Usage: {t.usage}\n"
            f"--- end {name} ---"
            for name, t in self._tools.items()
        ]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.is_registered(name)

    def __len__(self) -> int:
        return len(self._tools)

    # ------------------------------------------------------------------ #
    # Invocation
    # ------------------------------------------------------------------ #
    async def invoke(self, name: str, tool_input: Any, context: Context) -> ToolResult:
        """
        Look up *name* and invoke it with *tool_input*.

        Returns
        -------
        ToolResult
            The tool's result on success.  Unknown names, missing or invalid input, tools that
            raise and tools that return nothing all produce a failure result; this method never
            raises.
        """
        self.invocations += 1
        tool = self._tools.get(name) if name else None
        if tool is None:
            logger.warning("Tool '%s' is not registered.", name)
            return ToolResult.failure(f"Tool '{name}' is not registered.", context)

        if tool_input is None:
            logger.warning("Tool '%s' requires input, but received null.", name)
            return ToolResult.failure(f"Tool '{name}' requires input, but received null.", context)

        if not isinstance(tool_input, tool.input_type):
            try:
                tool_input = tool.input_type.model_validate(
                    tool_input.model_dump() if isinstance(tool_input, BaseModel) else tool_input
                )
            except ValidationError as exc:
                logger.warning("Invalid input for tool '%s': %s", name, exc)
                return ToolResult.failure(f"Invalid input for tool '{name}': {exc}", context)

        try:
            logger.debug("Executing tool '%s' with input=%s", name, canonical_json(tool_input))
            result = await tool.invoke(tool_input, context)
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Unhandled error in tool '%s'", name)
            return ToolResult.failure(f"Tool '{name}' raised an error: {exc}", context)

        if result is None:
            logger.error("Tool '%s' returned null result.", name)
            return ToolResult.failure(f"Tool '{name}' returned null result.", context)

        if not result.succeeded:
            error = result.error or "Unknown error"
            logger.warning("Tool '%s' failed: %s", name, error)
            return ToolResult.failure(error, result.context or context)

        if result.context is None:
            logger.warning("Tool '%s' returned no context; keeping the caller's.", name)
            result = replace(result, context=context)

        self._archive(name, tool_input, result.response)
        return result

    def _archive(self, name: str, tool_input: Any, response: str) -> None:
        reference = f"{name}({canonical_json(tool_input)})"
        try:
            self.archive.add_content(response, reference)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Failed to archive result of '%s'", reference)
