"""Configuration system for the Sift backend.

This module handles loading settings from environment variables and INI files,
providing sensible defaults, and computing derived paths under the data
directory.
"""

from configparser import ConfigParser
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional
import os

from sift.constants.cache import (
    EMBEDDING_CACHE_MAX_ENTRIES,
    EMBEDDING_CACHE_TTL_SECONDS,
    LOCAL_DEPLOYMENT_SCOPE,
    RETRIEVAL_CACHE_MAX_ENTRIES,
    RETRIEVAL_CACHE_TTL_SECONDS,
)
from sift.constants.llm import (
    DEFAULT_TEMPERATURE,
    EMBEDDING_BACKOFF_MULTIPLIER,
    EMBEDDING_DIMENSIONS,
    EMBEDDING_INITIAL_DELAY,
    EMBEDDING_JITTER,
    EMBEDDING_MAX_ATTEMPTS,
    MAX_TOKENS,
    PIPELINE_TIMEOUT_SECONDS,
)
from sift.constants.retrieval import (
    AGENT_OVERFETCH_FACTOR,
    CONTENT_MATCH_BOOST,
    DISTANCE_THRESHOLD,
    NAME_MATCH_BOOST,
    RESULT_LIMIT,
)
from sift.constants.scoring import (
    SCORING_BACKOFF_MULTIPLIER,
    SCORING_BATCH_SIZE,
    SCORING_INITIAL_DELAY,
    SCORING_JITTER,
    SCORING_MAX_ATTEMPTS,
    SCORING_MAX_CONCURRENCY,
    SCORING_MAX_TOKENS,
    SCORING_TEMPERATURE,
)
from sift.constants.selection import KEEP_PERCENTAGE, MAX_RESULTS, MIN_RESULTS, MIN_SCORE


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


# Schema: section -> key -> (type, default, min, max, description)
CONFIG_SCHEMA: dict[str, dict[str, tuple[type, Any, Any, Any, str]]] = {
    "retrieval": {
        "distance_threshold": (float, DISTANCE_THRESHOLD, 0.0, 2.0, "Max raw distance admitted"),
        "result_limit": (int, RESULT_LIMIT, 1, 200, "Candidates returned per query"),
        "content_boost": (float, CONTENT_MATCH_BOOST, 0.0, 1.0, "Content match discount"),
        "name_boost": (float, NAME_MATCH_BOOST, 0.0, 1.0, "Name match discount"),
        "agent_overfetch_factor": (
            int,
            AGENT_OVERFETCH_FACTOR,
            1,
            20,
            "Neighbour multiplier for agent post-filtering",
        ),
    },
    "scoring": {
        "batch_size": (int, SCORING_BATCH_SIZE, 1, 50, "Candidates per scoring prompt"),
        "max_concurrency": (int, SCORING_MAX_CONCURRENCY, 1, 8, "Concurrent scoring batches"),
        "max_attempts": (int, SCORING_MAX_ATTEMPTS, 1, 10, "Attempts per batch"),
        "initial_delay": (float, SCORING_INITIAL_DELAY, 0.0, 30.0, "First retry delay (s)"),
        "backoff_multiplier": (float, SCORING_BACKOFF_MULTIPLIER, 1.0, 5.0, "Delay growth"),
        "jitter": (float, SCORING_JITTER, 0.0, 5.0, "Max random delay added (s)"),
        "temperature": (float, SCORING_TEMPERATURE, 0.0, 1.0, "Scoring temperature"),
        "max_tokens": (int, SCORING_MAX_TOKENS, 10, 1000, "Scoring response token cap"),
    },
    "selection": {
        "min_results": (int, MIN_RESULTS, 0, 100, "Minimum keep size before the floor"),
        "keep_percentage": (float, KEEP_PERCENTAGE, 0.0, 1.0, "Share of candidates kept"),
        "min_score": (int, MIN_SCORE, 0, 10, "Relevance floor"),
        "max_results": (int, MAX_RESULTS, 1, 100, "Maximum contexts returned"),
    },
    "cache": {
        "ttl_seconds": (int, RETRIEVAL_CACHE_TTL_SECONDS, 1, None, "Retrieval cache TTL"),
        "max_entries": (int, RETRIEVAL_CACHE_MAX_ENTRIES, 1, None, "In-process cache size"),
    },
    "embedding": {
        "dimensions": (int, EMBEDDING_DIMENSIONS, 8, 4096, "Embedding vector size"),
        "max_attempts": (int, EMBEDDING_MAX_ATTEMPTS, 1, 10, "Attempts per embedding"),
        "initial_delay": (float, EMBEDDING_INITIAL_DELAY, 0.0, 30.0, "First retry delay (s)"),
        "backoff_multiplier": (float, EMBEDDING_BACKOFF_MULTIPLIER, 1.0, 5.0, "Delay growth"),
        "jitter": (float, EMBEDDING_JITTER, 0.0, 5.0, "Max random delay added (s)"),
        "cache_ttl_seconds": (int, EMBEDDING_CACHE_TTL_SECONDS, 1, None, "Embedding cache TTL"),
        "cache_max_entries": (int, EMBEDDING_CACHE_MAX_ENTRIES, 1, None, "Embedding cache size"),
    },
    "pipeline": {
        "timeout_seconds": (float, PIPELINE_TIMEOUT_SECONDS, 1.0, 600.0, "Whole-pipeline timeout"),
    },
    "llm": {
        "max_tokens": (int, MAX_TOKENS, 256, 32768, "Max response tokens"),
        "default_temperature": (float, DEFAULT_TEMPERATURE, 0.0, 2.0, "Default LLM temperature"),
    },
    "indexing": {
        "chunk_max_chars": (int, 6000, 200, 100_000, "Max characters per stored chunk"),
    },
}


@dataclass(frozen=True)
class RetrievalConfig:
    """Candidate retrieval configuration."""

    distance_threshold: float
    result_limit: int
    content_boost: float
    name_boost: float
    agent_overfetch_factor: int


@dataclass(frozen=True)
class ScoringConfig:
    """Relevance scorer configuration."""

    batch_size: int
    max_concurrency: int
    max_attempts: int
    initial_delay: float
    backoff_multiplier: float
    jitter: float
    temperature: float
    max_tokens: int


@dataclass(frozen=True)
class SelectionConfig:
    """Context selection configuration."""

    min_results: int
    keep_percentage: float
    min_score: int
    max_results: int


@dataclass(frozen=True)
class CacheConfig:
    """Retrieval cache configuration."""

    ttl_seconds: int
    max_entries: int


@dataclass(frozen=True)
class EmbeddingConfig:
    """Embedding client configuration."""

    dimensions: int
    max_attempts: int
    initial_delay: float
    backoff_multiplier: float
    jitter: float
    cache_ttl_seconds: int
    cache_max_entries: int


@dataclass(frozen=True)
class PipelineConfig:
    """Pipeline orchestration configuration."""

    timeout_seconds: float


@dataclass(frozen=True)
class LLMConfig:
    """LLM client configuration."""

    max_tokens: int
    default_temperature: float


@dataclass(frozen=True)
class IndexingConfig:
    """Content indexing configuration."""

    chunk_max_chars: int


_SECTION_CLASSES: dict[str, type] = {
    "retrieval": RetrievalConfig,
    "scoring": ScoringConfig,
    "selection": SelectionConfig,
    "cache": CacheConfig,
    "embedding": EmbeddingConfig,
    "pipeline": PipelineConfig,
    "llm": LLMConfig,
    "indexing": IndexingConfig,
}


def _load_section(
    parser: ConfigParser, section: str, schema: dict[str, tuple[type, Any, Any, Any, str]]
) -> dict[str, Any]:
    """Load and validate a configuration section.

    Args:
        parser: ConfigParser instance with loaded config
        section: Section name to load
        schema: Schema definition for the section

    Returns:
        Dictionary of validated configuration values

    Raises:
        ConfigError: If validation fails
    """
    result = {}

    for key, (typ, default, min_val, max_val, _) in schema.items():
        if parser.has_option(section, key):
            raw_value = parser.get(section, key)
            value: bool | int | float | str
            try:
                if typ is bool:
                    value = raw_value.lower() in ("true", "1", "yes", "on")
                elif typ is int:
                    value = int(raw_value)
                elif typ is float:
                    value = float(raw_value)
                else:
                    value = raw_value
            except ValueError as e:
                raise ConfigError(
                    f"Invalid value for [{section}].{key}: {raw_value!r} (expected {typ.__name__})"
                ) from e
        else:
            value = default

        if typ in (int, float) and value is not None:
            if min_val is not None and value < min_val:
                raise ConfigError(
                    f"Value for [{section}].{key} is {value}, but minimum is {min_val}"
                )
            if max_val is not None and value > max_val:
                raise ConfigError(
                    f"Value for [{section}].{key} is {value}, but maximum is {max_val}"
                )

        result[key] = value

    return result


def _default_section(section: str) -> Any:
    """Build a section dataclass populated with schema defaults."""
    values = {key: default for key, (_, default, _, _, _) in CONFIG_SCHEMA[section].items()}
    return _SECTION_CLASSES[section](**values)


@dataclass(frozen=True)
class Config:
    """Complete application configuration."""

    data_dir: Path
    deployment_id: str = LOCAL_DEPLOYMENT_SCOPE
    redis_url: Optional[str] = None
    active_provider: str = "ollama"
    active_model: str = "llama2"
    scoring_model: str = "gpt-4o-mini"
    embedding_model: str = "text-embedding-3-small"
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    google_api_key: Optional[str] = None
    ollama_endpoint: str = "http://localhost:11434"

    # Section configs - defaults set in __post_init__, type: ignore needed because
    # frozen dataclass doesn't allow proper initialization pattern
    retrieval: RetrievalConfig = None  # type: ignore[assignment]
    scoring: ScoringConfig = None  # type: ignore[assignment]
    selection: SelectionConfig = None  # type: ignore[assignment]
    cache: CacheConfig = None  # type: ignore[assignment]
    embedding: EmbeddingConfig = None  # type: ignore[assignment]
    pipeline: PipelineConfig = None  # type: ignore[assignment]
    llm: LLMConfig = None  # type: ignore[assignment]
    indexing: IndexingConfig = None  # type: ignore[assignment]

    def __post_init__(self):
        """Initialize section configs with defaults if not provided."""
        # Since frozen=True, we need to use object.__setattr__
        for section in _SECTION_CLASSES:
            if getattr(self, section) is None:
                object.__setattr__(self, section, _default_section(section))

    @property
    def chroma_path(self) -> Path:
        """Path to ChromaDB vector store directory."""
        return self.data_dir / "chroma"

    @property
    def llm_log_path(self) -> Path:
        """Path to LLM query log file."""
        return self.data_dir / "logs" / "llm-queries.jsonl"

    @property
    def is_local(self) -> bool:
        """Whether this is a local development deployment."""
        return self.deployment_id == LOCAL_DEPLOYMENT_SCOPE

    @property
    def llm_provider(self) -> str:
        """LLM provider name."""
        return self.active_provider

    @property
    def llm_model(self) -> str:
        """LLM model name."""
        return self.active_model

    @property
    def llm_api_key(self) -> Optional[str]:
        """API key for the active LLM provider."""
        return self._api_key_for(self.active_provider)

    @property
    def llm_endpoint(self) -> Optional[str]:
        """Endpoint for LLM provider (mainly for Ollama)."""
        if self.active_provider == "ollama":
            return self.ollama_endpoint
        return None

    def _api_key_for(self, provider: str) -> Optional[str]:
        provider_keys = {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "google": self.google_api_key,
        }
        return provider_keys.get(provider)


def _load_config(config_path: Optional[Path] = None, data_dir: Optional[Path] = None) -> Config:
    """Load configuration from an INI file.

    Args:
        config_path: Path to config file. If None, uses defaults from schema.
        data_dir: Data directory for derived paths. Defaults to ~/.sift.

    Returns:
        Config object with all sections populated.

    Raises:
        ConfigError: If validation fails
    """
    parser = ConfigParser()

    if config_path and config_path.exists():
        parser.read(config_path)

    sections = {
        section: _SECTION_CLASSES[section](**_load_section(parser, section, schema))
        for section, schema in CONFIG_SCHEMA.items()
    }

    return Config(data_dir=data_dir or Path.home() / ".sift", **sections)


def _detect_provider_from_keys() -> tuple[str, str]:
    """Auto-detect provider from available API keys.

    Returns:
        Tuple of (provider, model) based on available keys.
        Falls back to ollama if no keys are found.
    """
    if os.getenv("OPENAI_API_KEY"):
        return ("openai", "gpt-4o")
    if os.getenv("ANTHROPIC_API_KEY"):
        return ("anthropic", "claude-3-5-sonnet-20241022")
    if os.getenv("GOOGLE_API_KEY"):
        return ("google", "gemini-1.5-pro")
    return ("ollama", "llama2")


@lru_cache(maxsize=1)
def load_settings() -> Config:
    """Load settings from environment variables and config file.

    Settings are cached for the lifetime of the application.
    Use load_settings.cache_clear() to reload settings.

    Returns:
        Config object populated from environment variables and config file.

    Raises:
        ConfigError: If the config file fails validation.
    """
    data_dir_str = os.getenv("SIFT_DATA_DIR")
    data_dir = Path(data_dir_str) if data_dir_str else Path.home() / ".sift"

    config_path_str = os.getenv("SIFT_CONFIG")
    config_file = Path(config_path_str) if config_path_str else data_dir / "config.ini"
    try:
        config_exists = config_file.exists()
    except PermissionError:
        config_exists = False
    base_config = _load_config(config_file if config_exists else None, data_dir=data_dir)

    active_provider = os.getenv("ACTIVE_PROVIDER")
    active_model = os.getenv("ACTIVE_MODEL")

    if not active_provider:
        detected_provider, detected_model = _detect_provider_from_keys()
        active_provider = detected_provider
        if not active_model:
            active_model = detected_model
    elif not active_model:
        provider_defaults = {
            "openai": "gpt-4o",
            "anthropic": "claude-3-5-sonnet-20241022",
            "google": "gemini-1.5-pro",
            "ollama": "llama2",
        }
        active_model = provider_defaults.get(active_provider, "llama2")

    return Config(
        data_dir=data_dir,
        deployment_id=os.getenv("DEPLOYMENT_ID") or LOCAL_DEPLOYMENT_SCOPE,
        redis_url=os.getenv("REDIS_URL") or None,
        active_provider=active_provider,
        active_model=active_model,
        scoring_model=os.getenv("SCORING_MODEL", "gpt-4o-mini"),
        embedding_model=os.getenv("EMBEDDING_MODEL", "text-embedding-3-small"),
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
        google_api_key=os.getenv("GOOGLE_API_KEY"),
        ollama_endpoint=os.getenv("OLLAMA_ENDPOINT", "http://localhost:11434"),
        retrieval=base_config.retrieval,
        scoring=base_config.scoring,
        selection=base_config.selection,
        cache=base_config.cache,
        embedding=base_config.embedding,
        pipeline=base_config.pipeline,
        llm=base_config.llm,
        indexing=base_config.indexing,
    )


Settings = Config
