"""Shell helpers: archive seeding and a full turn."""

import asyncio

from conftest import (
    ANSWER,
    OBJECTIVE,
    PlannerProvider,
    RecordingArchive,
)

from waypoint.agent.agent_loop import (
    answer,
    seed_context,
)
from waypoint.agent.planner import Planner
from waypoint.common import (
    AnsiColors,
    colorize,
    run_summary,
)
from waypoint.core.context import Context
from waypoint.core.schema import Role
from waypoint.tools import ToolRegistry


def test_seed_context_replaces_snippets(archive: RecordingArchive) -> None:
    """Each turn starts from the archive's matches only."""
    archive.add_content("the deploy script lives in ops/", "notes")
    context = Context()
    context.add_snippet("stale", "old turn")

    seed_context(context, archive, "deploy")

    assert [s.reference for s in context.snippets()] == ["notes"]


def test_answer_records_both_sides_of_the_turn() -> None:
    """The user message and the reply are appended to the conversation."""
    provider = PlannerProvider(answer="Hello there")
    planner = Planner(provider, ToolRegistry())

    reply, context = asyncio.run(answer(planner, Context(), "hi"))

    assert reply == "Hello there"
    assert [(m.role, m.content) for m in context.history()] == [
        (Role.USER, "hi"),
        (Role.ASSISTANT, "Hello there"),
    ]
    assert provider.kinds() == [OBJECTIVE, ANSWER]


def test_console_helpers() -> None:
    """Colored text is reset afterwards; the status line counts calls and steps."""
    assert colorize("hi", AnsiColors.RED) == "\033[91mhi\033[0m"
    assert run_summary("goal_achieved", 1, 1) == "[goal_achieved: 1 tool call in 1 step]"
    assert run_summary("max_steps_exceeded", 3, 5) == (
        "[max_steps_exceeded: 3 tool calls in 5 steps]"
    )
