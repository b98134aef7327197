"""FastAPI dependency injection functions."""

from functools import lru_cache

from sift.config import Settings, load_settings
from sift.context.answer import AnswerGenerator
from sift.context.cache import (
    CacheBackend,
    InMemoryCacheBackend,
    RedisCacheBackend,
    RetrievalCache,
)
from sift.context.retrieval import CandidateRetriever
from sift.context.scoring import RelevanceScorer
from sift.context.service import ContextService
from sift.indexing.service import IndexingService
from sift.llm.client import LLMClient
from sift.llm.embeddings import EmbeddingClient
from sift.retry import RetryPolicy
from sift.ttl_cache import TTLCache
from sift.vectorstore.store import ContextStore


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return load_settings()


_store_instance: ContextStore | None = None


def get_store() -> ContextStore:
    """Get the context store instance."""
    global _store_instance
    if _store_instance is None:
        settings = get_settings()
        settings.chroma_path.mkdir(parents=True, exist_ok=True)
        _store_instance = ContextStore(settings.chroma_path)
    return _store_instance


def _reset_store_instance() -> None:
    """Reset context store instance (for testing only)."""
    global _store_instance
    if _store_instance is not None:
        _store_instance.close()
        _store_instance = None


_llm_instance: LLMClient | None = None
_scoring_llm_instance: LLMClient | None = None


def get_llm() -> LLMClient:
    """Get the answering LLM client instance."""
    global _llm_instance
    if _llm_instance is None:
        settings = get_settings()
        _llm_instance = LLMClient(
            provider=settings.llm_provider,
            model=settings.llm_model,
            api_key=settings.llm_api_key,
            endpoint=settings.llm_endpoint,
            log_path=settings.llm_log_path,
            default_temperature=settings.llm.default_temperature,
            max_tokens=settings.llm.max_tokens,
        )
    return _llm_instance


def get_scoring_llm() -> LLMClient:
    """Get the LLM client used for relevance scoring.

    Scoring always runs on the small OpenAI model named by SCORING_MODEL.
    """
    global _scoring_llm_instance
    if _scoring_llm_instance is None:
        settings = get_settings()
        _scoring_llm_instance = LLMClient(
            provider="openai",
            model=settings.scoring_model,
            api_key=settings.openai_api_key,
            log_path=settings.llm_log_path,
            default_temperature=settings.scoring.temperature,
            max_tokens=settings.scoring.max_tokens,
        )
    return _scoring_llm_instance


def _reset_llm_instance() -> None:
    """Reset LLM client instances (for testing only)."""
    global _llm_instance, _scoring_llm_instance
    _llm_instance = None
    _scoring_llm_instance = None


_embedder_instance: EmbeddingClient | None = None


def get_embedder() -> EmbeddingClient:
    """Get the embedding client instance."""
    global _embedder_instance
    if _embedder_instance is None:
        settings = get_settings()
        embedding = settings.embedding
        _embedder_instance = EmbeddingClient(
            model=settings.embedding_model,
            api_key=settings.openai_api_key,
            dimensions=embedding.dimensions,
            retry_policy=RetryPolicy(
                max_attempts=embedding.max_attempts,
                initial_delay=embedding.initial_delay,
                multiplier=embedding.backoff_multiplier,
                jitter=embedding.jitter,
            ),
            cache=TTLCache(
                max_entries=embedding.cache_max_entries,
                ttl_seconds=embedding.cache_ttl_seconds,
            ),
        )
    return _embedder_instance


def _reset_embedder_instance() -> None:
    """Reset embedding client instance (for testing only)."""
    global _embedder_instance
    _embedder_instance = None


_cache_backend_instance: CacheBackend | None = None


def get_cache_backend() -> CacheBackend:
    """Get the retrieval cache backend: Redis when REDIS_URL is set, else in-process."""
    global _cache_backend_instance
    if _cache_backend_instance is None:
        settings = get_settings()
        if settings.redis_url:
            _cache_backend_instance = RedisCacheBackend.from_url(settings.redis_url)
        else:
            _cache_backend_instance = InMemoryCacheBackend(settings.cache.max_entries)
    return _cache_backend_instance


async def close_cache_backend() -> None:
    """Close the cache backend connection, if one was opened."""
    global _cache_backend_instance
    if isinstance(_cache_backend_instance, RedisCacheBackend):
        await _cache_backend_instance.close()
    _cache_backend_instance = None


def _reset_cache_backend_instance() -> None:
    """Reset cache backend instance (for testing only)."""
    global _cache_backend_instance
    _cache_backend_instance = None


def get_context_service() -> ContextService:
    """Build the context service from the shared clients."""
    settings = get_settings()
    retrieval = settings.retrieval
    scoring = settings.scoring

    retriever = CandidateRetriever.for_store(
        get_store(),
        get_embedder(),
        distance_threshold=retrieval.distance_threshold,
        limit=retrieval.result_limit,
        overfetch_factor=retrieval.agent_overfetch_factor,
        content_boost=retrieval.content_boost,
        name_boost=retrieval.name_boost,
    )
    scorer = RelevanceScorer(
        get_scoring_llm(),
        batch_size=scoring.batch_size,
        retry_policy=RetryPolicy(
            max_attempts=scoring.max_attempts,
            initial_delay=scoring.initial_delay,
            multiplier=scoring.backoff_multiplier,
            jitter=scoring.jitter,
        ),
        max_concurrency=scoring.max_concurrency,
        temperature=scoring.temperature,
        max_tokens=scoring.max_tokens,
    )
    cache = RetrievalCache(
        get_cache_backend(),
        deployment_scope=settings.deployment_id,
        ttl_seconds=settings.cache.ttl_seconds,
    )
    return ContextService.from_settings(settings, retriever, scorer, cache)


def get_answer_generator() -> AnswerGenerator:
    """Build the answer generator."""
    return AnswerGenerator(get_context_service(), get_llm())


def get_indexing_service() -> IndexingService:
    """Build the indexing service."""
    settings = get_settings()
    return IndexingService(
        get_store(),
        get_embedder(),
        chunk_max_chars=settings.indexing.chunk_max_chars,
    )
