"""Context retrieval pipeline: cache, retrieve, score, select."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from sift.config import Settings
from sift.constants.llm import PIPELINE_TIMEOUT_SECONDS
from sift.context.cache import RetrievalCache, build_fingerprint
from sift.context.errors import PipelineTimeout
from sift.context.retrieval import CandidateRetriever
from sift.context.schemas import (
    AgentContext,
    RelevantContext,
    RetrievalMode,
    SurroundingMessage,
)
from sift.context.scoring import RelevanceScorer
from sift.context.selection import select_context

logger = logging.getLogger(__name__)


class ContextService:
    """Finds the passages most useful for answering a question.

    One call runs: cache lookup, then on a miss candidate retrieval, LLM
    relevance scoring and selection, then a cache write. Each stage finishes
    before the next one starts.
    """

    def __init__(
        self,
        retriever: CandidateRetriever,
        scorer: RelevanceScorer,
        cache: RetrievalCache,
        timeout_seconds: float = PIPELINE_TIMEOUT_SECONDS,
        selection: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            retriever: Candidate retriever.
            scorer: Relevance scorer.
            cache: Read-through retrieval cache.
            timeout_seconds: Budget for one whole call.
            selection: Optional overrides for select_context() keyword arguments.
        """
        self._retriever = retriever
        self._scorer = scorer
        self._cache = cache
        self._timeout_seconds = timeout_seconds
        self._selection = dict(selection or {})

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        retriever: CandidateRetriever,
        scorer: RelevanceScorer,
        cache: RetrievalCache,
    ) -> ContextService:
        return cls(
            retriever,
            scorer,
            cache,
            timeout_seconds=settings.pipeline.timeout_seconds,
            selection={
                "min_results": settings.selection.min_results,
                "keep_percentage": settings.selection.keep_percentage,
                "min_score": settings.selection.min_score,
                "max_results": settings.selection.max_results,
            },
        )

    async def find_relevant_context(
        self,
        question: str,
        scope_key: str,
        mode: RetrievalMode | str = RetrievalMode.GENERAL,
        agent_id: str | None = None,
        related_addresses: Sequence[str] | None = None,
        conversation_context: list[SurroundingMessage] | None = None,
        prompt_type: str = "default",
    ) -> list[RelevantContext]:
        """Return the selected contexts for a question, best first.

        Args:
            question: The user's question.
            scope_key: Tenant (team) whose content may be searched.
            mode: "general" or "agent".
            agent_id: Agent whose components are searched in agent mode.
            related_addresses: Contract addresses whose ABIs are searched in
                agent mode.
            conversation_context: Prior messages, shown to the scorer.
            prompt_type: Prompt variant of the caller; part of the cache key.

        Returns:
            Up to the configured maximum of contexts, possibly empty.

        Raises:
            EmbeddingFailure: If the question could not be embedded.
            ScoringBatchFailure: If relevance scoring kept failing.
            RetrievalQueryFailure: If a general-mode query failed.
            PipelineTimeout: If the call exceeded its time budget.
        """
        mode = RetrievalMode(mode)
        agent_context = None
        if mode == RetrievalMode.AGENT:
            agent_context = AgentContext(
                agent_id=agent_id or "",
                related_addresses=tuple(related_addresses or ()),
            )

        fingerprint = build_fingerprint(
            deployment_scope=self._cache.deployment_scope,
            team=scope_key,
            prompt_type=prompt_type,
            agent_id=agent_id,
            question=question,
            conversation_context=conversation_context,
        )

        async def compute() -> list[RelevantContext]:
            candidates = await self._retriever.retrieve(question, scope_key, mode, agent_context)
            scores = await self._scorer.score(candidates, question, conversation_context)
            return select_context(candidates, scores, **self._selection)

        try:
            contexts = await asyncio.wait_for(
                self._cache.get_or_compute(fingerprint, compute),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Context lookup timed out after {self._timeout_seconds}s")
            raise PipelineTimeout(
                f"Context lookup exceeded {self._timeout_seconds}s"
            ) from e

        logger.info(f"Selected {len(contexts)} context(s) for scope {scope_key}")
        return contexts
