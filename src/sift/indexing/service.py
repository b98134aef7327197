"""Indexing service: chunk, embed and store context passages."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from sift.context.retrieval import Embedder
from sift.context.schemas import ContextType
from sift.vectorstore.store import ContextRecord, ContextStore

logger = logging.getLogger(__name__)

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


@dataclass(frozen=True)
class ContextItem:
    """A passage submitted for indexing.

    Attributes:
        id: Caller-chosen identifier. For components, prefixed by the agent id.
        content: Passage text.
        name: Display name or title.
        location: Where the passage came from (URL, path, address).
        type: Content type.
    """

    id: str
    content: str
    name: str
    location: str = ""
    type: ContextType = ContextType.DOCUMENT


def split_paragraphs(text: str, max_chars: int) -> list[str]:
    """Split text into chunks of at most ``max_chars`` on paragraph boundaries.

    Paragraphs are packed greedily. A single paragraph longer than
    ``max_chars`` is hard-split.

    Args:
        text: Text to split.
        max_chars: Maximum characters per chunk.

    Returns:
        Non-empty chunks in document order.
    """
    if max_chars < 1:
        raise ValueError("max_chars must be at least 1")

    text = text.strip()
    if not text:
        return []
    if len(text) <= max_chars:
        return [text]

    chunks: list[str] = []
    current = ""
    for paragraph in _PARAGRAPH_BREAK.split(text):
        paragraph = paragraph.strip()
        if not paragraph:
            continue

        candidate = f"{current}\n\n{paragraph}" if current else paragraph
        if len(candidate) <= max_chars:
            current = candidate
            continue

        if current:
            chunks.append(current)
            current = ""

        while len(paragraph) > max_chars:
            chunks.append(paragraph[:max_chars])
            paragraph = paragraph[max_chars:]
        current = paragraph

    if current:
        chunks.append(current)
    return chunks


class IndexingService:
    """Writes passages into the context store for one scope at a time."""

    def __init__(self, store: ContextStore, embedder: Embedder, chunk_max_chars: int = 6000):
        self._store = store
        self._embedder = embedder
        self._chunk_max_chars = chunk_max_chars

    async def _records_for(self, scope_key: str, item: ContextItem) -> list[ContextRecord]:
        chunks = split_paragraphs(item.content, self._chunk_max_chars)
        if not chunks:
            return []

        if len(chunks) == 1:
            embedding = await self._embedder.embed(chunks[0])
            return [
                ContextRecord(
                    id=item.id,
                    scope_key=scope_key,
                    content=chunks[0],
                    name=item.name,
                    location=item.location,
                    type=ContextType(item.type).value,
                    embedding=embedding,
                )
            ]

        records = []
        for n, chunk in enumerate(chunks, start=1):
            embedding = await self._embedder.embed(chunk)
            records.append(
                ContextRecord(
                    id=f"{item.id}#{n}",
                    scope_key=scope_key,
                    content=chunk,
                    name=item.name,
                    location=f"{item.location}#{n}",
                    type=ContextType(item.type).value,
                    embedding=embedding,
                    original_location=item.location,
                )
            )
        return records

    async def index(self, scope_key: str, items: list[ContextItem]) -> int:
        """Embed and upsert passages for a scope.

        Args:
            scope_key: Tenant the passages belong to.
            items: Passages to index. Long content is chunked.

        Returns:
            Number of rows written.

        Raises:
            ValueError: If scope_key is empty.
            EmbeddingFailure: If a passage could not be embedded.
        """
        if not scope_key:
            raise ValueError("scope_key is required")

        records: list[ContextRecord] = []
        for item in items:
            records.extend(await self._records_for(scope_key, item))

        written = self._store.upsert(records)
        logger.info(f"Indexed {written} row(s) from {len(items)} item(s) for scope {scope_key}")
        return written

    def delete_scope(self, scope_key: str) -> None:
        """Remove everything indexed for a scope."""
        self._store.delete_scope(scope_key)
        logger.info(f"Deleted indexed content for scope {scope_key}")
