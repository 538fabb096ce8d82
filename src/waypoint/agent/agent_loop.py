"""Interactive shell driving the planner one user turn at a time."""

from __future__ import annotations

import asyncio
import logging
from typing import Tuple

from waypoint.agent.planner import Planner
from waypoint.common import (
    AnsiColors,
    colored_print,
    run_summary,
)
from waypoint.config import settings
from waypoint.core.context import Context
from waypoint.core.errors import WaypointError
from waypoint.memory.archive import RetrievalArchive

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Agent Loop
# ---------------------------------------------------------------------------
def get_user_message() -> Tuple[str, bool]:
    """
    Get a message from the user via standard input.

    Returns:
        Tuple of (user_input, success_flag)
        The success_flag is False if input couldn't be read (e.g., Ctrl+C)
    """
    try:
        user_input = input().strip()
        return user_input, True
    except (EOFError, KeyboardInterrupt):
        return "", False


def seed_context(context: Context, archive: RetrievalArchive, user_msg: str) -> None:
    """Replace the context's snippets with the archive's best matches for *user_msg*."""
    context.clear_snippets()
    try:
        snippets = archive.query(user_msg, k=settings.RAG_TOP_K)
    except Exception as exc:  # pylint: disable=broad-except
        logger.warning("Archive query failed: %s", exc)
        return
    for snippet in snippets:
        context.add_snippet(snippet.reference, snippet.chunk)
    logger.debug("Seeded context with %d snippets", len(snippets))


async def answer(planner: Planner, context: Context, user_msg: str) -> Tuple[str, Context]:
    """Run one user turn through the planner and record the reply in the returned context."""
    context.add_user_message(user_msg)
    reply, context = await planner.run(context)
    context.add_assistant_message(reply)
    return reply, context


def run_cli(planner: Planner, archive: RetrievalArchive, context: Context | None = None) -> None:
    """Run the main agent loop in CLI mode."""
    colored_print(
        "🧭  Waypoint shell - type 'exit' to quit, '/clear' to start over.", AnsiColors.YELLOW
    )
    context = context or Context()

    while True:
        colored_print("\n🧑 You: ", AnsiColors.BLUE, end="")
        user_msg, ok = get_user_message()
        if not ok:
            break  # Exit if user input couldn't be retrieved (e.g., Ctrl+C)
        if not user_msg:
            continue
        if user_msg.lower() in {"exit", "quit"}:
            break
        if user_msg == "/clear":
            context = Context()
            colored_print("Conversation cleared.", AnsiColors.GRAY)
            continue
        if user_msg.startswith("/save "):
            path = user_msg[len("/save ") :].strip()
            context.save(path)
            colored_print(f"Conversation saved to {path}.", AnsiColors.GRAY)
            continue

        seed_context(context, archive, user_msg)
        try:
            reply, context = asyncio.run(answer(planner, context, user_msg))
        except WaypointError as exc:
            logger.error("Turn failed: %s", exc)
            colored_print(f"⚠️ {exc}", AnsiColors.RED)
            continue

        run = planner.last_run
        if run is not None and run.executed:
            colored_print(
                run_summary(run.state.value, run.executed, run.steps_taken), AnsiColors.GRAY
            )
        colored_print(reply, AnsiColors.GREEN)
