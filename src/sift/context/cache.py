"""Read-through cache in front of the context pipeline."""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

from pydantic import TypeAdapter, ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from sift.constants.cache import (
    CACHE_KEY_PREFIX,
    LOCAL_DEPLOYMENT_SCOPE,
    RETRIEVAL_CACHE_MAX_ENTRIES,
    RETRIEVAL_CACHE_TTL_SECONDS,
)
from sift.context.errors import CacheBackendFailure
from sift.context.schemas import RelevantContext, SurroundingMessage
from sift.ttl_cache import TTLCache

logger = logging.getLogger(__name__)

_CONTEXT_LIST = TypeAdapter(list[RelevantContext])


class CacheBackend(Protocol):
    """Key-value store with per-key expiry."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...


class InMemoryCacheBackend:
    """Process-local backend, used when no Redis URL is configured."""

    def __init__(self, max_entries: int = RETRIEVAL_CACHE_MAX_ENTRIES) -> None:
        self._entries: TTLCache[str] = TTLCache(
            max_entries=max_entries, ttl_seconds=RETRIEVAL_CACHE_TTL_SECONDS
        )

    async def get(self, key: str) -> str | None:
        return self._entries.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._entries.set(key, value, ttl_seconds=ttl_seconds)


class RedisCacheBackend:
    """Redis backend. Redis errors are reported as CacheBackendFailure."""

    def __init__(self, client: Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> RedisCacheBackend:
        return cls(Redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> str | None:
        try:
            value = await self._client.get(key)
        except (RedisError, OSError) as e:
            raise CacheBackendFailure(f"Redis GET failed: {e}") from e
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._client.set(key, value, ex=ttl_seconds)
        except (RedisError, OSError) as e:
            raise CacheBackendFailure(f"Redis SET failed: {e}") from e

    async def close(self) -> None:
        await self._client.aclose()


def build_fingerprint(
    deployment_scope: str,
    team: str,
    prompt_type: str,
    agent_id: str | None,
    question: str,
    conversation_context: list[SurroundingMessage] | None = None,
) -> str:
    """Deterministic cache key for a logical context request.

    The deployment scope and team appear verbatim in the key, so requests for
    different teams can never share an entry; the rest is hashed.
    """
    payload = json.dumps(
        {
            "deployment": deployment_scope,
            "team": team,
            "prompt_type": prompt_type,
            "agent_id": agent_id or "none",
            "question": question,
            "messages": [m.model_dump() for m in conversation_context or []],
        },
        sort_keys=True,
        ensure_ascii=False,
    )
    digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()
    return f"{CACHE_KEY_PREFIX}:{deployment_scope}:{team}:{digest}"


class RetrievalCache:
    """Caches selected contexts per request fingerprint.

    Backend failures never fail a request: a failed read is a miss and a
    failed write is skipped. The local development scope never touches the
    backend.
    """

    def __init__(
        self,
        backend: CacheBackend,
        deployment_scope: str,
        ttl_seconds: int = RETRIEVAL_CACHE_TTL_SECONDS,
    ) -> None:
        self._backend = backend
        self.deployment_scope = deployment_scope
        self._ttl_seconds = ttl_seconds

    @property
    def enabled(self) -> bool:
        return self.deployment_scope != LOCAL_DEPLOYMENT_SCOPE

    async def _read(self, fingerprint: str) -> list[RelevantContext] | None:
        try:
            cached = await self._backend.get(fingerprint)
        except Exception as e:
            logger.warning(f"Cache read failed, treating as miss: {e}")
            return None
        if cached is None:
            return None
        try:
            return _CONTEXT_LIST.validate_json(cached)
        except ValidationError as e:
            logger.warning(f"Discarding undecodable cache entry {fingerprint}: {e}")
            return None

    async def _write(self, fingerprint: str, contexts: list[RelevantContext]) -> None:
        try:
            payload = _CONTEXT_LIST.dump_json(contexts).decode("utf-8")
            await self._backend.set(fingerprint, payload, self._ttl_seconds)
        except Exception as e:
            logger.warning(f"Cache write failed for {fingerprint}: {e}")

    async def get_or_compute(
        self,
        fingerprint: str,
        compute: Callable[[], Awaitable[list[RelevantContext]]],
    ) -> list[RelevantContext]:
        """Return cached contexts, or compute and cache them.

        Args:
            fingerprint: Key from build_fingerprint().
            compute: Coroutine factory producing fresh contexts on a miss.

        Returns:
            The cached or freshly computed contexts.
        """
        if not self.enabled:
            return await compute()

        cached = await self._read(fingerprint)
        if cached is not None:
            logger.info(f"Context cache hit: {fingerprint}")
            return cached

        logger.debug(f"Context cache miss: {fingerprint}")
        contexts = await compute()
        await self._write(fingerprint, contexts)
        return contexts
