"""Configuration tests.

Tests verify behavior (types, ranges, loading) not specific values.
"""

from pathlib import Path

import pytest

from sift.config import (
    CONFIG_SCHEMA,
    Config,
    ConfigError,
    _load_config,
    load_settings,
)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Clear the load_settings cache before each test."""
    load_settings.cache_clear()
    yield
    load_settings.cache_clear()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove environment variables that influence settings."""
    for name in (
        "SIFT_CONFIG",
        "DEPLOYMENT_ID",
        "REDIS_URL",
        "ACTIVE_PROVIDER",
        "ACTIVE_MODEL",
        "SCORING_MODEL",
        "EMBEDDING_MODEL",
        "OPENAI_API_KEY",
        "ANTHROPIC_API_KEY",
        "GOOGLE_API_KEY",
        "OLLAMA_ENDPOINT",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def write_config(directory: Path, content: str) -> Path:
    """Write a config.ini file to the directory and return the path."""
    config_path = directory / "config.ini"
    config_path.write_text(content)
    return config_path


# =============================================================================
# Type Validation Tests
# =============================================================================


def test_all_settings_have_correct_types():
    """Every setting matches its declared type from schema."""
    config = _load_config(None)

    for section_name, keys in CONFIG_SCHEMA.items():
        section = getattr(config, section_name)
        for key, (expected_type, *_) in keys.items():
            value = getattr(section, key)
            assert isinstance(value, expected_type), (
                f"{section_name}.{key}: expected {expected_type.__name__}, "
                f"got {type(value).__name__}"
            )


def test_invalid_type_raises_clear_error(tmp_path: Path):
    """Non-numeric value for int setting gives helpful message."""
    config_path = write_config(tmp_path, "[scoring]\nbatch_size = five")

    with pytest.raises(ConfigError) as exc_info:
        _load_config(config_path)

    assert "scoring" in str(exc_info.value)
    assert "batch_size" in str(exc_info.value)
    assert "int" in str(exc_info.value)


def test_invalid_float_raises_clear_error(tmp_path: Path):
    """Non-numeric value for float setting gives helpful message."""
    config_path = write_config(tmp_path, "[selection]\nkeep_percentage = most")

    with pytest.raises(ConfigError) as exc_info:
        _load_config(config_path)

    assert "keep_percentage" in str(exc_info.value)
    assert "float" in str(exc_info.value)


# =============================================================================
# Range Validation Tests
# =============================================================================


def test_defaults_within_declared_ranges():
    """Every schema default lies within its own min/max."""
    for section_name, keys in CONFIG_SCHEMA.items():
        for key, (_, default, min_val, max_val, _) in keys.items():
            if min_val is not None:
                assert default >= min_val, f"{section_name}.{key} below minimum"
            if max_val is not None:
                assert default <= max_val, f"{section_name}.{key} above maximum"


def test_value_below_minimum_raises_error(tmp_path: Path):
    """Value below declared minimum raises ConfigError."""
    config_path = write_config(tmp_path, "[scoring]\nbatch_size = 0")

    with pytest.raises(ConfigError) as exc_info:
        _load_config(config_path)

    assert "minimum" in str(exc_info.value)


def test_value_above_maximum_raises_error(tmp_path: Path):
    """Value above declared maximum raises ConfigError."""
    config_path = write_config(tmp_path, "[selection]\nmin_score = 11")

    with pytest.raises(ConfigError) as exc_info:
        _load_config(config_path)

    assert "maximum" in str(exc_info.value)


# =============================================================================
# Loading Tests
# =============================================================================


def test_pipeline_defaults():
    """Defaults reproduce the standard retrieval and selection parameters."""
    config = _load_config(None)

    assert config.retrieval.distance_threshold == 0.8
    assert config.retrieval.result_limit == 15
    assert config.scoring.batch_size == 5
    assert config.selection.min_results == 6
    assert config.selection.keep_percentage == 0.35
    assert config.selection.min_score == 4
    assert config.selection.max_results == 10
    assert config.cache.ttl_seconds == 1800
    assert config.embedding.dimensions == 512


def test_ini_overrides_defaults(tmp_path: Path):
    """Values in the INI file replace schema defaults."""
    config_path = write_config(
        tmp_path,
        "[selection]\nmax_results = 5\n\n[cache]\nttl_seconds = 60\n",
    )

    config = _load_config(config_path)

    assert config.selection.max_results == 5
    assert config.cache.ttl_seconds == 60
    assert config.selection.min_results == 6


def test_config_without_sections_gets_defaults(tmp_path: Path):
    """A Config built directly gets default section values."""
    config = Config(data_dir=tmp_path)

    assert config.retrieval.result_limit == 15
    assert config.indexing.chunk_max_chars > 0


def test_derived_paths_live_under_data_dir(tmp_path: Path):
    """Derived paths are computed from the data directory."""
    config = Config(data_dir=tmp_path)

    assert config.chroma_path == tmp_path / "chroma"
    assert config.llm_log_path == tmp_path / "logs" / "llm-queries.jsonl"


def test_load_settings_reads_environment(tmp_path: Path, clean_env):
    """load_settings picks up deployment, cache and model settings from env."""
    clean_env.setenv("SIFT_DATA_DIR", str(tmp_path))
    clean_env.setenv("DEPLOYMENT_ID", "prod-eu")
    clean_env.setenv("REDIS_URL", "redis://cache:6379/0")
    clean_env.setenv("SCORING_MODEL", "gpt-4.1-mini")

    settings = load_settings()

    assert settings.data_dir == tmp_path
    assert settings.deployment_id == "prod-eu"
    assert settings.redis_url == "redis://cache:6379/0"
    assert settings.scoring_model == "gpt-4.1-mini"
    assert settings.is_local is False


def test_load_settings_defaults_to_local_deployment(tmp_path: Path, clean_env):
    """Without DEPLOYMENT_ID the deployment is local and Redis is unset."""
    clean_env.setenv("SIFT_DATA_DIR", str(tmp_path))

    settings = load_settings()

    assert settings.deployment_id == "local"
    assert settings.is_local is True
    assert settings.redis_url is None
    assert settings.embedding_model == "text-embedding-3-small"


def test_load_settings_reads_config_file_from_data_dir(tmp_path: Path, clean_env):
    """config.ini in the data directory is loaded automatically."""
    clean_env.setenv("SIFT_DATA_DIR", str(tmp_path))
    write_config(tmp_path, "[pipeline]\ntimeout_seconds = 12.5\n")

    settings = load_settings()

    assert settings.pipeline.timeout_seconds == 12.5


def test_provider_detected_from_api_key(tmp_path: Path, clean_env):
    """With only an Anthropic key, the answering provider is Anthropic."""
    clean_env.setenv("SIFT_DATA_DIR", str(tmp_path))
    clean_env.setenv("ANTHROPIC_API_KEY", "sk-ant-test")

    settings = load_settings()

    assert settings.llm_provider == "anthropic"
    assert settings.llm_api_key == "sk-ant-test"
    assert settings.llm_endpoint is None


def test_ollama_is_fallback_provider(tmp_path: Path, clean_env):
    """Without any API keys, Ollama is used with its endpoint."""
    clean_env.setenv("SIFT_DATA_DIR", str(tmp_path))

    settings = load_settings()

    assert settings.llm_provider == "ollama"
    assert settings.llm_endpoint == "http://localhost:11434"
