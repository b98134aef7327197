"""LLM and embedding client abstraction."""

from sift.llm.client import (
    LLMAuthenticationError,
    LLMClient,
    LLMConnectionError,
    LLMError,
    LLMRateLimitError,
)
from sift.llm.embeddings import EmbeddingClient

__all__ = [
    "EmbeddingClient",
    "LLMAuthenticationError",
    "LLMClient",
    "LLMConnectionError",
    "LLMError",
    "LLMRateLimitError",
]
