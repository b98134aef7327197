"""Text embedding client with retry and an injected cache."""

from __future__ import annotations

import asyncio
import logging

from litellm import aembedding
from litellm.exceptions import AuthenticationError, BadRequestError, ContextWindowExceededError

from sift.constants.llm import EMBEDDING_DIMENSIONS
from sift.context.errors import EmbeddingFailure
from sift.llm.client import LITELLM_ERRORS, LLMError, translate_error
from sift.retry import RetryPolicy, SleepFn, with_retry
from sift.ttl_cache import TTLCache

logger = logging.getLogger(__name__)


class EmbeddingClient:
    """Converts text into fixed-dimension vectors via LiteLLM.

    Transient provider failures are retried with exponential backoff.
    Inputs that exceed the model's context window are not retried: splitting
    long text is the job of the caller (see ``sift.indexing``).
    """

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        dimensions: int = EMBEDDING_DIMENSIONS,
        retry_policy: RetryPolicy | None = None,
        cache: TTLCache[list[float]] | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        """Initialize the embedding client.

        Args:
            model: LiteLLM embedding model name.
            api_key: Optional API key (uses env var if not provided).
            dimensions: Requested vector size.
            retry_policy: Backoff schedule for transient failures.
            cache: Optional text -> vector cache.
            sleep: Awaitable sleep used between retries.
        """
        self.model = model
        self.api_key = api_key
        self.dimensions = dimensions
        self._retry_policy = retry_policy or RetryPolicy(initial_delay=0.4)
        self._cache = cache
        self._sleep = sleep

    async def _request(self, text: str) -> list[float]:
        kwargs = {
            "model": self.model,
            "input": [text],
            "dimensions": self.dimensions,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key

        try:
            response = await aembedding(**kwargs)
        except ContextWindowExceededError as e:
            raise EmbeddingFailure(f"Text too long to embed ({len(text)} chars): {e}") from e
        except AuthenticationError as e:
            raise EmbeddingFailure(f"Authentication failed: {e}") from e
        except BadRequestError as e:
            raise EmbeddingFailure(f"Embedding request rejected: {e}") from e
        except LITELLM_ERRORS as e:
            raise translate_error(e) from e

        vector = [float(x) for x in response.data[0]["embedding"]]
        if len(vector) != self.dimensions:
            raise EmbeddingFailure(
                f"Expected {self.dimensions}-dimension embedding, got {len(vector)}"
            )
        return vector

    async def embed(self, text: str) -> list[float]:
        """Embed a single text.

        Args:
            text: Text to embed.

        Returns:
            Embedding vector of length ``dimensions``.

        Raises:
            EmbeddingFailure: If the provider keeps failing or rejects the input.
        """
        if self._cache is not None:
            cached = self._cache.get(text)
            if cached is not None:
                return cached

        try:
            vector = await with_retry(
                lambda: self._request(text),
                self._retry_policy,
                retry_on=(LLMError,),
                sleep=self._sleep,
                description="Embedding request",
            )
        except LLMError as e:
            raise EmbeddingFailure(f"Embedding failed after retries: {e}") from e

        if self._cache is not None:
            self._cache.set(text, vector)
        return vector
