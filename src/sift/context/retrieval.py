"""Candidate retrieval strategies over the scoped vector store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from sift.constants.retrieval import (
    AGENT_OVERFETCH_FACTOR,
    AGENT_SCOPED_TYPES,
    CONTENT_MATCH_BOOST,
    DISTANCE_THRESHOLD,
    NAME_MATCH_BOOST,
    RESULT_LIMIT,
)
from sift.context.errors import RetrievalQueryFailure
from sift.context.schemas import AgentContext, ContextCandidate, ContextType, RetrievalMode
from sift.vectorstore.store import ContextStore, StoreRow

logger = logging.getLogger(__name__)


class Embedder(Protocol):
    async def embed(self, text: str) -> list[float]: ...


@dataclass(frozen=True)
class RetrievalQuery:
    """Everything a strategy needs to run one query."""

    question: str
    embedding: list[float]
    scope_key: str
    agent: AgentContext | None = None


class RetrievalStrategy(Protocol):
    async def retrieve(self, query: RetrievalQuery) -> list[ContextCandidate]: ...


def lexical_boost(
    question: str,
    content: str,
    name: str,
    content_boost: float = CONTENT_MATCH_BOOST,
    name_boost: float = NAME_MATCH_BOOST,
) -> float:
    """Distance multiplier for a literal (case-insensitive) question match.

    Returns ``content_boost`` if the question occurs in the content,
    ``name_boost`` if it occurs in the name, otherwise 1.0.
    """
    needle = question.lower()
    if not needle:
        return 1.0
    if needle in content.lower():
        return content_boost
    if needle in name.lower():
        return name_boost
    return 1.0


def _parse_type(raw: str | None) -> ContextType:
    if not raw:
        return ContextType.COMPONENT
    try:
        return ContextType(raw)
    except ValueError:
        logger.debug(f"Unknown context type {raw!r}, treating as document")
        return ContextType.DOCUMENT


def to_candidate(
    row: StoreRow,
    question: str,
    content_boost: float = CONTENT_MATCH_BOOST,
    name_boost: float = NAME_MATCH_BOOST,
) -> ContextCandidate:
    """Build a candidate from a store row, applying the lexical boost."""
    factor = lexical_boost(question, row.content, row.name, content_boost, name_boost)
    return ContextCandidate(
        id=row.id,
        content=row.content,
        name=row.name,
        location=row.location,
        type=_parse_type(row.type),
        similarity=row.distance,
        adjusted_similarity=row.distance * factor,
        original_location=row.original_location,
    )


def rank_candidates(
    rows: list[StoreRow],
    question: str,
    limit: int,
    content_boost: float = CONTENT_MATCH_BOOST,
    name_boost: float = NAME_MATCH_BOOST,
) -> list[ContextCandidate]:
    """Boost rows and order them by adjusted distance (stable), capped at ``limit``."""
    candidates = [to_candidate(row, question, content_boost, name_boost) for row in rows]
    candidates.sort(key=lambda c: c.adjusted_similarity)
    return candidates[:limit]


def matches_agent_filter(row: StoreRow, agent: AgentContext) -> bool:
    """Structural agent-mode filter.

    Components must belong to the agent, ABIs must name one of the related
    contract addresses, and every other typed row passes.
    """
    if row.type == ContextType.COMPONENT.value:
        return row.id.startswith(agent.agent_id)
    if row.type == ContextType.ABI.value:
        name = row.name.lower()
        return any(address and address.lower() in name for address in agent.related_addresses)
    return row.type is not None and row.type not in AGENT_SCOPED_TYPES


class GeneralRetrieval:
    """Nearest passages in the scope below a fixed distance threshold."""

    def __init__(
        self,
        store: ContextStore,
        distance_threshold: float = DISTANCE_THRESHOLD,
        limit: int = RESULT_LIMIT,
        content_boost: float = CONTENT_MATCH_BOOST,
        name_boost: float = NAME_MATCH_BOOST,
    ) -> None:
        self._store = store
        self._distance_threshold = distance_threshold
        self._limit = limit
        self._content_boost = content_boost
        self._name_boost = name_boost

    async def retrieve(self, query: RetrievalQuery) -> list[ContextCandidate]:
        try:
            rows = self._store.query_nearest(
                scope_key=query.scope_key,
                query_embedding=query.embedding,
                limit=self._limit,
                distance_threshold=self._distance_threshold,
            )
        except Exception as e:
            raise RetrievalQueryFailure(f"General query failed: {e}") from e
        return rank_candidates(
            rows, query.question, self._limit, self._content_boost, self._name_boost
        )


class AgentRetrieval:
    """Nearest passages restricted to one agent's components and contracts."""

    def __init__(
        self,
        store: ContextStore,
        limit: int = RESULT_LIMIT,
        overfetch_factor: int = AGENT_OVERFETCH_FACTOR,
        content_boost: float = CONTENT_MATCH_BOOST,
        name_boost: float = NAME_MATCH_BOOST,
    ) -> None:
        self._store = store
        self._limit = limit
        self._overfetch_factor = overfetch_factor
        self._content_boost = content_boost
        self._name_boost = name_boost

    async def retrieve(self, query: RetrievalQuery) -> list[ContextCandidate]:
        agent = query.agent
        if agent is None or not agent.agent_id:
            return []
        try:
            rows = self._store.query_nearest(
                scope_key=query.scope_key,
                query_embedding=query.embedding,
                limit=self._limit,
                row_filter=lambda row: matches_agent_filter(row, agent),
                fetch_limit=self._limit * self._overfetch_factor,
            )
        except Exception as e:
            raise RetrievalQueryFailure(f"Agent query failed: {e}") from e
        return rank_candidates(
            rows, query.question, self._limit, self._content_boost, self._name_boost
        )


class FallbackRetrieval:
    """Runs ``primary``; on a query failure, runs ``fallback`` with the same query."""

    def __init__(self, primary: RetrievalStrategy, fallback: RetrievalStrategy) -> None:
        self.primary = primary
        self.fallback = fallback

    async def retrieve(self, query: RetrievalQuery) -> list[ContextCandidate]:
        try:
            return await self.primary.retrieve(query)
        except RetrievalQueryFailure as e:
            logger.warning(f"Primary retrieval failed for scope {query.scope_key}: {e}")
        logger.info("Falling back to general retrieval")
        return await self.fallback.retrieve(query)


class CandidateRetriever:
    """Embeds the question and runs the retrieval strategy for the mode."""

    def __init__(
        self,
        embedder: Embedder,
        general: RetrievalStrategy,
        agent: RetrievalStrategy,
    ) -> None:
        """Initialize the retriever.

        Args:
            embedder: Embedding provider for the question.
            general: Strategy used in general mode.
            agent: Strategy used in agent mode (typically a FallbackRetrieval).
        """
        self._embedder = embedder
        self._strategies: dict[RetrievalMode, RetrievalStrategy] = {
            RetrievalMode.GENERAL: general,
            RetrievalMode.AGENT: agent,
        }

    @classmethod
    def for_store(
        cls,
        store: ContextStore,
        embedder: Embedder,
        distance_threshold: float = DISTANCE_THRESHOLD,
        limit: int = RESULT_LIMIT,
        overfetch_factor: int = AGENT_OVERFETCH_FACTOR,
        content_boost: float = CONTENT_MATCH_BOOST,
        name_boost: float = NAME_MATCH_BOOST,
    ) -> CandidateRetriever:
        """Wire the standard strategies: general, and agent falling back to general."""
        general = GeneralRetrieval(store, distance_threshold, limit, content_boost, name_boost)
        agent = AgentRetrieval(store, limit, overfetch_factor, content_boost, name_boost)
        return cls(embedder, general=general, agent=FallbackRetrieval(agent, general))

    async def retrieve(
        self,
        question: str,
        scope_key: str,
        mode: RetrievalMode = RetrievalMode.GENERAL,
        agent_context: AgentContext | None = None,
    ) -> list[ContextCandidate]:
        """Retrieve up to the configured number of candidates for a question.

        Raises:
            EmbeddingFailure: If the question could not be embedded.
            RetrievalQueryFailure: If the query failed with no fallback left.
        """
        if mode == RetrievalMode.AGENT and (agent_context is None or not agent_context.agent_id):
            return []

        embedding = await self._embedder.embed(question)
        query = RetrievalQuery(
            question=question,
            embedding=embedding,
            scope_key=scope_key,
            agent=agent_context,
        )
        return await self._strategies[RetrievalMode(mode)].retrieve(query)
