"""Schema tests: canonical serialization and record invariants."""

from waypoint.core.context import Context
from waypoint.core.schema import (
    NoInput,
    PathAndPatternInput,
    PlanObjective,
    PlanStep,
    ToolResult,
    ToolSelection,
    canonical_json,
)


def test_canonical_json_is_order_independent() -> None:
    """Key order never changes the serialized form."""
    assert canonical_json({"b": 1, "a": {"d": 2, "c": 3}}) == canonical_json(
        {"a": {"c": 3, "d": 2}, "b": 1}
    )
    assert canonical_json(NoInput()) == "{}"


def test_step_key_round_trips_through_the_input_shape() -> None:
    """Re-parsing the canonical input yields an equal object and the same key."""
    step = PlanStep.run("grep_files", PathAndPatternInput(path="src", pattern="TODO"), "look")
    reparsed = PathAndPatternInput.model_validate_json(canonical_json(step.tool_input))

    assert reparsed == step.tool_input
    assert PlanStep.run("grep_files", reparsed, "other reason").key == step.key
    assert step.key == 'grep_files:{"path":"src","pattern":"TODO"}'


def test_complete_step_invariant() -> None:
    """A done step has no tool and a NoInput placeholder."""
    step = PlanStep.complete("nothing left")
    assert step.done and step.tool_name == ""
    assert isinstance(step.tool_input, NoInput)


def test_objective_requires_action() -> None:
    """Only a real goal with take_action=true triggers planning."""
    assert PlanObjective(take_action=True, goal="list files").requires_action()
    assert not PlanObjective(take_action=False, goal="list files").requires_action()
    assert not PlanObjective(take_action=True, goal="   ").requires_action()
    assert not PlanObjective(take_action=True, goal="no further action required").requires_action()


def test_tool_result_failure_prefix() -> None:
    """Failures carry the raw error and an ERROR-prefixed response."""
    context = Context()
    result = ToolResult.failure("boom", context)

    assert not result.succeeded
    assert result.error == "boom"
    assert result.response == "ERROR: boom"
    assert result.context is context


def test_tool_selection_accepts_null_name() -> None:
    """A null tool name or reasoning is read as empty."""
    selection = ToolSelection.model_validate_json('{"tool_name": null, "reasoning": null}')

    assert selection.tool_name == ""
    assert selection.reasoning == ""
