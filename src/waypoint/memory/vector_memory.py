"""
Thin wrapper around Chroma for storing & querying text chunks.

Each archived item is one document:
  text     = the tool response (or any other content)
  metadata = { "reference": <where it came from> }
"""

import hashlib
import logging
import os
from typing import (
    List,
    cast,
)

import chromadb
from chromadb.api.types import EmbeddingFunction
from chromadb.utils import embedding_functions

from waypoint.core.schema import Snippet

logger = logging.getLogger(__name__)

_DEFAULT_EMBED_MODEL = os.getenv("WAYPOINT_EMBED_MODEL", "all-MiniLM-L6-v2")  # small; runs CPU-only


class VectorMemory:
    """
    Chroma wrapper implementing the retrieval archive.
    """

    def __init__(
        self,
        collection_name: str = "waypoint",
        persist: bool = True,
        host: str = "localhost",
        port: int = 8000,
    ):
        self._client = chromadb.HttpClient(host=host, port=port)
        self._embed_fn: EmbeddingFunction = (
            embedding_functions.SentenceTransformerEmbeddingFunction(
                model_name=_DEFAULT_EMBED_MODEL
            )
        )

        if not persist:
            # Delete the collection if it exists (non-persistent mode)
            try:
                self._client.delete_collection(collection_name)
                logger.info(
                    "Deleted existing collection '%s' (non-persistent mode)", collection_name
                )
            except Exception as e:  # pylint: disable=broad-except
                # Collection might not exist yet, which is fine
                logger.debug("Could not delete collection '%s': %s", collection_name, str(e))

        self._col = self._client.get_or_create_collection(
            name=collection_name, embedding_function=cast(EmbeddingFunction, self._embed_fn)
        )

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def add_content(self, text: str, reference: str = "content") -> None:
        """Add or upsert *text*; identical content under the same reference is stored once."""
        doc_id = hashlib.sha256(f"{reference}\n{text}".encode("utf-8")).hexdigest()
        self._col.upsert(
            ids=[doc_id],
            documents=[text],
            metadatas=[{"reference": reference}],
        )

    def query(self, text: str, k: int = 3) -> List[Snippet]:
        """Return top-k snippets similar to `text`."""
        if not text or self.count() == 0:
            return []
        res = self._col.query(
            query_texts=[text],
            n_results=k,
            include=["documents", "metadatas"],
        )
        logger.debug("Memory query results: '%s'", res)
        if not res or not res.get("documents"):
            return []
        documents = res["documents"][0]
        metadatas = (res.get("metadatas") or [[{}] * len(documents)])[0]
        return [
            Snippet(str((meta or {}).get("reference", "content")), doc)
            for doc, meta in zip(documents, metadatas)
        ]

    # Convenience for tests / admin
    def count(self) -> int:
        """Return number of documents in the collection."""
        return self._col.count()
