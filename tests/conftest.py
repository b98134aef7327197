"""Shared pytest fixtures for all tests.

These fixtures properly clean up resources to prevent file descriptor leaks.
"""

import gc

import pytest

from sift.vectorstore.store import ContextStore


@pytest.fixture(autouse=True)
def cleanup_after_test():
    """Clean up resources after each test to prevent file descriptor leaks.

    This runs automatically after every test to help garbage collect
    any lingering ChromaDB connections.
    """
    yield
    # Force garbage collection to release file handles
    gc.collect()


@pytest.fixture
def temp_store(tmp_path):
    """Create a temporary context store that cleans up properly.

    This fixture should be used instead of creating ContextStore instances
    directly in tests to ensure ChromaDB connections are released.
    """
    index_path = tmp_path / "chroma"
    index_path.mkdir()
    store = ContextStore(index_path)
    yield store
    # Clean up to release file handles
    store.close()
    gc.collect()


@pytest.fixture
def no_sleep():
    """Awaitable sleep that records requested delays instead of waiting."""
    delays: list[float] = []

    async def sleep(seconds: float) -> None:
        delays.append(seconds)

    sleep.delays = delays  # type: ignore[attr-defined]
    return sleep

