"""Context retrieval, relevance scoring and selection."""

from sift.context.errors import (
    CacheBackendFailure,
    ContextPipelineError,
    EmbeddingFailure,
    PipelineTimeout,
    RetrievalQueryFailure,
    ScoringBatchFailure,
)
from sift.context.schemas import (
    AgentContext,
    ContextCandidate,
    ContextType,
    RelevanceScore,
    RelevantContext,
    RetrievalMode,
    SurroundingMessage,
)

__all__ = [
    "AgentContext",
    "CacheBackendFailure",
    "ContextCandidate",
    "ContextPipelineError",
    "ContextType",
    "EmbeddingFailure",
    "PipelineTimeout",
    "RelevanceScore",
    "RelevantContext",
    "RetrievalMode",
    "RetrievalQueryFailure",
    "ScoringBatchFailure",
    "SurroundingMessage",
]
