"""Conversation context tests."""

from pathlib import Path

from waypoint.config import settings
from waypoint.core.context import Context
from waypoint.core.schema import (
    ChatMessage,
    Role,
)


def test_default_system_prompt_comes_from_settings() -> None:
    """A bare context starts with the configured instruction."""
    assert Context().system_message().content == settings.SYSTEM_PROMPT


def test_system_message_append_and_replace() -> None:
    """add_system_message appends; set_system_message replaces."""
    context = Context("Be helpful.")
    context.add_system_message("Be brief.")
    assert context.system_message().content == "Be helpful.\nBe brief."

    context.set_system_message("Be exact.")
    assert context.system_message().content == "Be exact."


def test_messages_keep_insertion_order() -> None:
    """The system message leads, then history in order."""
    context = Context("sys")
    context.add_user_message("first")
    context.add_assistant_message("reply")
    context.add_tool_message("tool output")
    context.add_user_message("second")

    roles = [m.role for m in context.messages()]
    assert roles == [Role.SYSTEM, Role.USER, Role.ASSISTANT, Role.TOOL, Role.USER]
    assert context.last_user_message() == "second"
    assert len(context.history()) == 4


def test_snippets_are_rendered_into_system_message() -> None:
    """Retrieval snippets are reference material, not messages."""
    context = Context("sys")
    context.add_snippet("notes.md", "the answer is 42")

    rendered = context.system_message().content
    assert rendered.startswith("sys\n")
    assert "--- BEGIN CONTEXT: notes.md ---\nthe answer is 42\n--- END CONTEXT ---" in rendered
    assert context.history() == []

    context.clear_snippets()
    assert context.system_message().content == "sys"


def test_clone_is_independent() -> None:
    """Mutating a clone never leaks into the original, and vice versa."""
    original = Context("sys")
    original.add_user_message("hello")
    original.add_snippet("ref", "chunk")

    scratch = original.clone()
    scratch.add_user_message("scratch question")
    scratch.add_system_message("extra guidance")
    scratch.add_snippet("ref2", "chunk2")
    original.add_tool_message("real tool output")

    assert [m.content for m in original.history()] == ["hello", "real tool output"]
    assert [m.content for m in scratch.history()] == ["hello", "scratch question"]
    assert "extra guidance" not in original.system_message().content
    assert len(original.snippets()) == 1
    assert len(scratch.snippets()) == 2


def test_constructor_folds_system_messages() -> None:
    """System messages passed as history become the instruction."""
    context = Context(
        messages=[
            ChatMessage(role=Role.SYSTEM, content="rules"),
            ChatMessage(role=Role.USER, content="hi"),
        ]
    )
    assert context.system_message().content == "rules"
    assert [m.role for m in context.history()] == [Role.USER]


def test_clear_empties_everything() -> None:
    """clear() drops instruction, messages and snippets."""
    context = Context("sys")
    context.add_user_message("hi")
    context.add_snippet("r", "c")
    context.clear()

    assert context.messages()[0].content == ""
    assert context.history() == []
    assert context.snippets() == []


def test_save_and_load_round_trip(tmp_path: Path) -> None:
    """A saved snapshot restores messages, snippets and the instruction."""
    context = Context("sys")
    context.add_user_message("hi")
    context.add_assistant_message("hello")
    context.add_snippet("ref", "chunk")
    target = tmp_path / "session" / "context.json"

    context.save(target)
    restored = Context.load(target)

    assert restored.messages() == context.messages()
    assert restored.snippets() == context.snippets()
