"""
Built-in tools: local filesystem inspection, the clock and a calculator.

File tools add what they read to the context they return as a retrieval snippet, so later prompts
in the same turn can cite it.
"""

import ast
import logging
import operator
import os
import re
from datetime import datetime
from pathlib import Path
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Type,
)

from waypoint.config import settings
from waypoint.core.context import Context
from waypoint.core.schema import (
    PathAndPatternInput,
    PathInput,
    ToolResult,
)
from waypoint.tools import (
    Tool,
    ToolRegistry,
)

logger = logging.getLogger(__name__)


def _supported_files(root: Path) -> List[Path]:
    suffixes = {s.lower() for s in settings.SUPPORTED_FILE_TYPES}
    return sorted(p for p in root.rglob("*") if p.is_file() and p.suffix.lower() in suffixes)


def _resolve(path: str) -> Path:
    return Path(path).expanduser() if path.strip() else Path(os.getcwd())


# ---------------------------------------------------------------------------
# Filesystem tools
# ---------------------------------------------------------------------------
class FileListTool(Tool):
    description = "Gets the names of files in the specified directory recursively."
    usage = (
        "Provide a directory path to list files from, or leave empty to use current directory."
    )
    input_type: Type[PathInput] = PathInput

    async def invoke(self, tool_input: PathInput, context: Context) -> ToolResult:
        root = _resolve(tool_input.path)
        if not root.is_dir():
            return ToolResult.failure(f"Directory not found: {root}", context)

        files = _supported_files(root)
        listing = "\n".join(str(f.relative_to(root)) for f in files)
        context.add_snippet("file_list", listing)
        return ToolResult.success(f"Found {len(files)} files:\n{listing}", context)


class FileMetadataTool(Tool):
    description = (
        "Extracts key metrics (lines, words, size) and modification details for a given file. "
        "Useful for identifying complexity or recent changes."
    )
    usage = (
        "Provide the full or relative path to a file to analyze its metadata including size, "
        "line count, word count, and modification time."
    )
    input_type: Type[PathInput] = PathInput

    async def invoke(self, tool_input: PathInput, context: Context) -> ToolResult:
        path = Path(tool_input.path).expanduser()
        if not tool_input.path.strip() or not path.is_file():
            return ToolResult.failure(f"File not found: {tool_input.path}", context)

        stat = path.stat()
        lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
        report = "\n".join(
            [
                f"File: {tool_input.path}",
                f"Size: {stat.st_size:,} bytes",
                f"Lines: {len(lines):,}",
                f"Words: {sum(len(line.split()) for line in lines):,}",
                f"Characters: {sum(len(line) for line in lines):,}",
                f"Last Modified: {datetime.fromtimestamp(stat.st_mtime):%Y-%m-%d %H:%M:%S}",
            ]
        )
        context.add_snippet("file_metadata", report)
        return ToolResult.success(report, context)


class SummarizeFileTool(Tool):
    description = (
        "Reads and summarizes the contents in a specified file. Ideal for analyzing or "
        "explaining text, log, source code or markdown files."
    )
    usage = (
        "Provide the path to a file to read and summarize. Large files will be truncated for "
        "processing."
    )
    input_type: Type[PathInput] = PathInput

    async def invoke(self, tool_input: PathInput, context: Context) -> ToolResult:
        path = Path(tool_input.path).expanduser()
        if not tool_input.path.strip() or not path.is_file():
            return ToolResult.failure(f"File not found: {tool_input.path}", context)

        content = path.read_text(encoding="utf-8", errors="replace")
        if len(content) > settings.MAX_FILE_CHARS:
            logger.info("Content of %s truncated to %d characters.", path, settings.MAX_FILE_CHARS)
            content = content[: settings.MAX_FILE_CHARS] + "\n... [truncated]"

        context.add_snippet(f"file_summary: {tool_input.path}", content)
        return ToolResult.success(f"Contents of {tool_input.path}:\n{content}", context)


class GrepFilesTool(Tool):
    description = "Searches for a text pattern in all supported files under a directory."
    usage = (
        "Provide a regular expression to search for across all supported files, and optionally "
        "a directory (defaults to the current directory). Returns matching lines."
    )
    input_type: Type[PathAndPatternInput] = PathAndPatternInput

    MAX_MATCHES = 200

    async def invoke(self, tool_input: PathAndPatternInput, context: Context) -> ToolResult:
        if not tool_input.pattern.strip():
            return ToolResult.failure("Please provide a text pattern to search for.", context)
        root = _resolve(tool_input.path)
        if not root.is_dir():
            return ToolResult.failure(f"Directory '{root}' does not exist.", context)
        try:
            pattern = re.compile(tool_input.pattern, re.IGNORECASE)
        except re.error as exc:
            return ToolResult.failure(f"Invalid pattern '{tool_input.pattern}': {exc}", context)

        matches: List[str] = []
        for file in _supported_files(root):
            text = file.read_text(encoding="utf-8", errors="replace")
            for lineno, line in enumerate(text.splitlines(), start=1):
                if pattern.search(line):
                    matches.append(f"{file.relative_to(root)}:{lineno}: {line.strip()}")
            if len(matches) >= self.MAX_MATCHES:
                break

        if not matches:
            return ToolResult.failure(
                f"No matches found for pattern '{tool_input.pattern}' in directory '{root}'.",
                context,
            )
        results = "\n".join(matches[: self.MAX_MATCHES])
        context.add_snippet(f"grep_files({tool_input.pattern})", results)
        return ToolResult.success(
            f"Found {len(matches)} matching lines for `{tool_input.pattern}`:\n{results}", context
        )


# ---------------------------------------------------------------------------
# Calculator
# ---------------------------------------------------------------------------
_OPERATORS: Dict[type, Callable[..., Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}


MAX_EXPONENT = 1000


def _power(base: Any, exponent: Any) -> Any:
    if abs(exponent) > MAX_EXPONENT:
        raise ValueError(f"Exponent {exponent} exceeds the limit of {MAX_EXPONENT}.")
    return operator.pow(base, exponent)


def evaluate_expression(expression: str) -> float | int:
    """
    Evaluate an arithmetic expression without ``eval``.

    Exponents are limited to ``MAX_EXPONENT`` in magnitude.
    """

    def _eval(node: ast.AST) -> Any:
        if isinstance(node, ast.Expression):
            return _eval(node.body)
        if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
            return node.value
        if isinstance(node, ast.BinOp) and isinstance(node.op, ast.Pow):
            return _power(_eval(node.left), _eval(node.right))
        if isinstance(node, ast.BinOp) and type(node.op) in _OPERATORS:
            return _OPERATORS[type(node.op)](_eval(node.left), _eval(node.right))
        if isinstance(node, ast.UnaryOp) and type(node.op) in _OPERATORS:
            return _OPERATORS[type(node.op)](_eval(node.operand))
        raise ValueError(f"Unsupported expression element: {ast.dump(node)}")

    return _eval(ast.parse(expression.strip(), mode="eval"))


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------
def register_builtin_tools(registry: ToolRegistry) -> ToolRegistry:
    """Register every built-in tool on *registry*."""
    registry.register("file_list", FileListTool())
    registry.register("file_metadata", FileMetadataTool())
    registry.register("summarize_file", SummarizeFileTool())
    registry.register("grep_files", GrepFilesTool())

    @registry.tool("datetime_current")
    def datetime_current() -> str:
        """Returns the current local date and time."""
        return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S %Z")

    @registry.tool("calculator")
    def calculator(expression: str) -> str:
        """Evaluates basic math expressions: + - * / // % ** and parentheses."""
        return str(evaluate_expression(expression))

    return registry
