"""
Retrieval archive contract.

Tool results and conversation snippets are indexed here so later prompts can reuse them.  The
planner never talks to the archive directly; the tool registry archives successful results and
the shell seeds each turn's context from :meth:`RetrievalArchive.query`.
"""

import logging
from typing import (
    List,
    Protocol,
    runtime_checkable,
)

from waypoint.config import settings
from waypoint.core.schema import Snippet

logger = logging.getLogger(__name__)


@runtime_checkable
class RetrievalArchive(Protocol):
    """Minimal interface every archive back-end implements."""

    def add_content(self, text: str, reference: str = "content") -> None:
        """Index *text* under *reference*."""

    def query(self, text: str, k: int = 3) -> List[Snippet]:
        """Return up to *k* snippets similar to *text*."""


class NullArchive:
    """Archive used when no vector store is configured: stores nothing, finds nothing."""

    def add_content(self, text: str, reference: str = "content") -> None:
        logger.debug("Archive disabled; dropping %d chars for '%s'", len(text), reference)

    def query(self, text: str, k: int = 3) -> List[Snippet]:
        return []


def load_archive(backend: str | None = None) -> RetrievalArchive:
    """
    Build the archive named by *backend* (default ``settings.VECTOR_DB``).

    ``"none"`` disables archiving.
    """
    target = (backend or settings.VECTOR_DB).lower()
    if target == "none":
        return NullArchive()
    if target == "chroma":
        # Lazy import - keeps chromadb off the import path when archiving is disabled
        from waypoint.memory.vector_memory import (  # pylint: disable=import-outside-toplevel
            VectorMemory,
        )

        return VectorMemory(host=settings.VECTOR_DB_HOST, port=settings.VECTOR_DB_PORT)
    raise ValueError(f"Unknown vector DB '{target}'.")
