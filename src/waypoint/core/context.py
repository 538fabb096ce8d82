"""
Conversation context threaded through every planner, parser and tool call.

A :class:`Context` holds one system instruction, an append-only list of chat messages and a list
of retrieval snippets.  Snippets are not messages; they are rendered into the system message so the
model sees them as reference material.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import (
    Iterable,
    List,
    Tuple,
)

from pydantic import (
    BaseModel,
    Field,
)

from waypoint.config import settings
from waypoint.core.schema import (
    ChatMessage,
    Role,
    Snippet,
)

logger = logging.getLogger(__name__)


class ContextSnapshot(BaseModel):
    """Serializable form of a :class:`Context`."""

    system_message: ChatMessage
    messages: List[ChatMessage] = Field(default_factory=list)
    snippets: List[Tuple[str, str]] = Field(default_factory=list)


class Context:
    """Ordered conversation log plus retrieval snippets."""

    def __init__(
        self,
        system_prompt: str | None = None,
        messages: Iterable[ChatMessage] | None = None,
    ) -> None:
        self._started_at = datetime.now()
        self._system_message = ChatMessage(
            role=Role.SYSTEM, content="", created_at=self._started_at
        )
        self._messages: List[ChatMessage] = []
        self._snippets: List[Snippet] = []

        if messages is None:
            default = settings.SYSTEM_PROMPT if system_prompt is None else system_prompt
            self.add_system_message(default)
            return

        if system_prompt:
            self.add_system_message(system_prompt)
        for msg in messages:
            if msg.role is Role.SYSTEM:
                self.add_system_message(msg.content)
            else:
                self._messages.append(msg)

    # ------------------------------------------------------------------ #
    # System message
    # ------------------------------------------------------------------ #
    def add_system_message(self, content: str) -> None:
        """Append *content* to the system instruction."""
        current = self._system_message.content
        self._system_message = ChatMessage(
            role=Role.SYSTEM,
            content=f"{current}\n{content}" if current else content,
            created_at=self._started_at,
        )

    def set_system_message(self, content: str) -> None:
        """Replace the system instruction."""
        self._system_message = ChatMessage(
            role=Role.SYSTEM, content=content, created_at=self._started_at
        )

    def system_message(self) -> ChatMessage:
        """Return the system instruction with any retrieval snippets rendered into it."""
        content = self._system_message.content
        if self._snippets:
            blocks = "\n".join(
                f"--- BEGIN CONTEXT: {s.reference} ---\n{s.chunk}\n--- END CONTEXT ---"
                for s in self._snippets
            )
            content += f"\nWhat follows is content to help answer your next question.\n{blocks}"
            content += (
                "\nWhen referring to the provided context in your answer, explicitly state which "
                "content you are referencing in the form 'as per [reference], [your answer]'."
            )
        return ChatMessage(role=Role.SYSTEM, content=content, created_at=self._started_at)

    # ------------------------------------------------------------------ #
    # Messages
    # ------------------------------------------------------------------ #
    def add_message(self, role: Role, content: str) -> None:
        """Append a message; system content is folded into the system instruction."""
        if role is Role.SYSTEM:
            self.add_system_message(content)
        else:
            self._messages.append(ChatMessage(role=role, content=content))

    def add_user_message(self, content: str) -> None:
        self.add_message(Role.USER, content)

    def add_assistant_message(self, content: str) -> None:
        self.add_message(Role.ASSISTANT, content)

    def add_tool_message(self, content: str) -> None:
        self.add_message(Role.TOOL, content)

    def messages(self) -> List[ChatMessage]:
        """The rendered system message followed by the conversation history."""
        return [self.system_message(), *self._messages]

    def history(self) -> List[ChatMessage]:
        """The conversation history without the system message."""
        return list(self._messages)

    def last_user_message(self) -> str:
        """Content of the most recent user message, or an empty string."""
        for msg in reversed(self._messages):
            if msg.role is Role.USER:
                return msg.content
        return ""

    # ------------------------------------------------------------------ #
    # Retrieval snippets
    # ------------------------------------------------------------------ #
    def add_snippet(self, reference: str, chunk: str) -> None:
        self._snippets.append(Snippet(reference, chunk))

    def snippets(self) -> List[Snippet]:
        """A copy of the retrieval snippets, in insertion order."""
        return list(self._snippets)

    def clear_snippets(self) -> None:
        self._snippets.clear()

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    def clone(self) -> "Context":
        """Return an independent copy; mutating either one never affects the other."""
        copy = Context(messages=[])
        copy._started_at = self._started_at
        copy._system_message = self._system_message
        copy._messages = list(self._messages)
        copy._snippets = list(self._snippets)
        return copy

    def clear(self) -> None:
        """Drop the system instruction, all messages and all snippets."""
        self._started_at = datetime.now()
        self._system_message = ChatMessage(
            role=Role.SYSTEM, content="", created_at=self._started_at
        )
        self._messages.clear()
        self._snippets.clear()

    def save(self, path: str | Path) -> None:
        """Write a JSON snapshot of this context to *path*."""
        snapshot = ContextSnapshot(
            system_message=self._system_message,
            messages=self._messages,
            snippets=[tuple(s) for s in self._snippets],
        )
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(snapshot.model_dump_json(indent=2), encoding="utf-8")
        logger.debug("Saved context with %d messages to %s", len(self._messages), target)

    @classmethod
    def load(cls, path: str | Path) -> "Context":
        """Restore a context previously written by :meth:`save`."""
        source = Path(path)
        if not source.exists():
            raise FileNotFoundError(f"File not found: {source}")
        snapshot = ContextSnapshot.model_validate_json(source.read_text(encoding="utf-8"))

        context = cls(messages=[])
        context._started_at = snapshot.system_message.created_at
        context._system_message = snapshot.system_message
        context._messages = list(snapshot.messages)
        context._snippets = [Snippet(ref, chunk) for ref, chunk in snapshot.snippets]
        return context

    def __repr__(self) -> str:
        return f"Context(messages={len(self._messages)}, snippets={len(self._snippets)})"
