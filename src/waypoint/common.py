"""Console helpers for the interactive shell."""

from enum import Enum
from typing import Any

RESET = "\033[0m"


class AnsiColors(Enum):
    """Terminal colors used by the shell: prompts, replies, notices and errors."""

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[33m"
    BLUE = "\033[94m"
    GRAY = "\033[90m"


def colorize(text: str, color: AnsiColors) -> str:
    """Wrap *text* in *color* and a trailing reset."""
    return f"{color.value}{text}{RESET}"


def colored_print(text: str, color: AnsiColors, *args: Any, **kwargs: Any) -> None:
    """``print`` *text* in *color*; extra arguments go straight to ``print``."""
    print(colorize(text, color), *args, **kwargs)


def run_summary(state: str, executed: int, steps: int) -> str:
    """One-line status shown after a turn that invoked tools, e.g. ``[goal_achieved: 2 ...]``."""
    calls = "tool call" if executed == 1 else "tool calls"
    return f"[{state}: {executed} {calls} in {steps} step{'' if steps == 1 else 's'}]"
