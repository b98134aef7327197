"""ChromaDB-backed store of embedded context passages."""

import gc
import hashlib
import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import chromadb
from chromadb.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContextRecord:
    """A passage to be written to the store."""

    id: str
    scope_key: str
    content: str
    name: str
    location: str
    type: str
    embedding: list[float]
    original_location: str | None = None


@dataclass(frozen=True)
class StoreRow:
    """A passage returned from a nearest-neighbour query."""

    id: str
    content: str
    name: str
    location: str
    type: str | None
    original_location: str | None
    distance: float


RowFilter = Callable[[StoreRow], bool]


def _row_key(scope_key: str, context_id: str, location: str) -> str:
    """Collection-wide unique key for a (scope, id, location) triple."""
    digest = hashlib.sha256(f"{scope_key}\x00{context_id}\x00{location}".encode()).hexdigest()
    return digest[:32]


def _rows_from_result(result: dict[str, Any]) -> list[StoreRow]:
    """Translate a ChromaDB query result into rows.

    This is the only place that knows the stored metadata layout.
    """
    documents = (result.get("documents") or [[]])[0] or []
    metadatas = (result.get("metadatas") or [[]])[0] or []
    distances = (result.get("distances") or [[]])[0] or []

    rows: list[StoreRow] = []
    for i, content in enumerate(documents):
        metadata = metadatas[i] if i < len(metadatas) and metadatas[i] else {}
        rows.append(
            StoreRow(
                id=str(metadata.get("context_id", "")),
                content=content or "",
                name=str(metadata.get("name", "")),
                location=str(metadata.get("location", "")),
                type=metadata.get("type") or None,
                original_location=metadata.get("original_location") or None,
                distance=float(distances[i]) if i < len(distances) else 1.0,
            )
        )
    return rows


class ContextStore:
    """Vector store wrapper for ChromaDB.

    Every row belongs to exactly one scope (tenant). Queries always filter on
    the scope; there is no way to search across scopes.
    """

    COLLECTION_NAME = "sift_contexts"

    def __init__(self, persist_path: Path) -> None:
        """Initialize vector store with persistent storage.

        Args:
            persist_path: Directory path for ChromaDB persistence.
        """
        self._client = chromadb.PersistentClient(
            path=str(persist_path),
            settings=Settings(anonymized_telemetry=False),
        )
        self._collection = self._get_collection()

    def _get_collection(self) -> chromadb.Collection:
        return self._client.get_or_create_collection(
            name=self.COLLECTION_NAME,
            metadata={"hnsw:space": "cosine"},
        )

    @property
    def collection(self) -> chromadb.Collection:
        """Get the underlying ChromaDB collection."""
        return self._collection

    def upsert(self, records: list[ContextRecord]) -> int:
        """Insert or replace passages.

        Args:
            records: Passages with precomputed embeddings.

        Returns:
            Number of rows written.
        """
        if not records:
            return 0

        ids: list[str] = []
        documents: list[str] = []
        embeddings: list[list[float]] = []
        metadatas: list[dict[str, Any]] = []
        for record in records:
            if not record.scope_key:
                raise ValueError("scope_key is required")
            metadata: dict[str, Any] = {
                "scope_key": record.scope_key,
                "context_id": record.id,
                "name": record.name,
                "location": record.location,
                "type": record.type,
            }
            if record.original_location:
                metadata["original_location"] = record.original_location
            ids.append(_row_key(record.scope_key, record.id, record.location))
            documents.append(record.content)
            embeddings.append(record.embedding)
            metadatas.append(metadata)

        self._collection.upsert(
            ids=ids,
            documents=documents,
            embeddings=embeddings,  # type: ignore[arg-type]
            metadatas=metadatas,  # type: ignore[arg-type]
        )
        return len(ids)

    def query_nearest(
        self,
        scope_key: str,
        query_embedding: list[float],
        limit: int,
        distance_threshold: float | None = None,
        where: dict[str, Any] | None = None,
        row_filter: RowFilter | None = None,
        fetch_limit: int | None = None,
    ) -> list[StoreRow]:
        """Find the passages nearest to a query vector within one scope.

        Args:
            scope_key: Tenant scope. Required.
            query_embedding: Query vector.
            limit: Maximum rows to return.
            distance_threshold: If set, only rows with distance strictly below
                it are returned.
            where: Optional extra metadata filter, ANDed with the scope.
            row_filter: Optional predicate applied to rows after the query,
                for conditions metadata filters cannot express.
            fetch_limit: Neighbours to request before post-filtering.
                Defaults to ``limit``.

        Returns:
            Rows ordered by ascending distance.
        """
        if not scope_key:
            raise ValueError("scope_key is required")

        available = self._collection.count()
        if available == 0:
            return []

        scope_filter: dict[str, Any] = {"scope_key": scope_key}
        full_where = {"$and": [scope_filter, where]} if where else scope_filter

        result = self._collection.query(
            query_embeddings=[query_embedding],  # type: ignore[arg-type]
            n_results=min(fetch_limit or limit, available),
            where=full_where,
            include=["documents", "metadatas", "distances"],  # type: ignore[list-item]
        )

        rows = _rows_from_result(dict(result))
        if distance_threshold is not None:
            rows = [row for row in rows if row.distance < distance_threshold]
        if row_filter is not None:
            rows = [row for row in rows if row_filter(row)]
        rows.sort(key=lambda row: row.distance)
        return rows[:limit]

    def count(self, scope_key: str) -> int:
        """Number of rows stored for a scope."""
        result = self._collection.get(where={"scope_key": scope_key}, include=[])
        return len(result.get("ids", []))

    def delete_scope(self, scope_key: str) -> None:
        """Delete every row belonging to a scope."""
        if not scope_key:
            raise ValueError("scope_key is required")
        self._collection.delete(where={"scope_key": scope_key})

    def close(self) -> None:
        """Release the client and its file handles."""
        if self._client is not None:
            try:
                if hasattr(self._client, "_identifier_to_system"):
                    for system in list(self._client._identifier_to_system.values()):
                        if hasattr(system, "stop"):
                            system.stop()
            except Exception as e:
                logger.debug(f"Error stopping ChromaDB systems: {e}")

        self._collection = None  # type: ignore[assignment]
        self._client = None  # type: ignore[assignment]

        gc.collect()
