"""Dependency wiring tests."""

import pytest

from sift.api import deps
from sift.config import load_settings
from sift.context.cache import InMemoryCacheBackend, RedisCacheBackend
from sift.context.service import ContextService


@pytest.fixture
def settings_env(tmp_path, monkeypatch):
    """Point settings at a temporary data dir and reset cached instances."""
    monkeypatch.setenv("SIFT_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("SIFT_CONFIG", raising=False)
    monkeypatch.delenv("REDIS_URL", raising=False)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    load_settings.cache_clear()
    deps.get_settings.cache_clear()
    deps._reset_cache_backend_instance()
    deps._reset_llm_instance()
    deps._reset_embedder_instance()
    yield monkeypatch
    deps._reset_store_instance()
    deps._reset_cache_backend_instance()
    deps._reset_llm_instance()
    deps._reset_embedder_instance()
    load_settings.cache_clear()
    deps.get_settings.cache_clear()


def test_in_memory_backend_without_redis_url(settings_env):
    assert isinstance(deps.get_cache_backend(), InMemoryCacheBackend)


def test_redis_backend_with_redis_url(settings_env):
    settings_env.setenv("REDIS_URL", "redis://localhost:6379/0")
    load_settings.cache_clear()
    deps.get_settings.cache_clear()

    assert isinstance(deps.get_cache_backend(), RedisCacheBackend)


def test_scoring_llm_uses_scoring_model(settings_env):
    settings_env.setenv("SCORING_MODEL", "gpt-4o-mini")

    llm = deps.get_scoring_llm()

    assert llm.provider == "openai"
    assert llm.model == "gpt-4o-mini"
    assert llm.api_key == "sk-test"


def test_clients_are_singletons(settings_env):
    assert deps.get_llm() is deps.get_llm()
    assert deps.get_embedder() is deps.get_embedder()


def test_context_service_is_wired(settings_env):
    service = deps.get_context_service()

    assert isinstance(service, ContextService)
