"""Context API endpoint tests."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from sift.api.deps import get_answer_generator, get_context_service, get_indexing_service
from sift.context.errors import EmbeddingFailure
from sift.context.schemas import RelevantContext, RetrievalMode
from sift.llm.client import LLMRateLimitError
from sift.main import app


@pytest.fixture
def context_service():
    service = AsyncMock()
    service.find_relevant_context.return_value = [
        RelevantContext(content="Stake from the dashboard.", name="Staking", score=9)
    ]
    return service


@pytest.fixture
def indexing_service():
    service = AsyncMock()
    service.index.return_value = 2
    service.delete_scope = MagicMock()
    return service


class FakeGenerator:
    def __init__(self, tokens, error: Exception | None = None) -> None:
        self.tokens = tokens
        self.error = error

    async def stream_answer(self, *args, **kwargs):
        for token in self.tokens:
            yield token
        if self.error is not None:
            raise self.error


@pytest.fixture
async def client(context_service, indexing_service):
    """Create async test client with service dependencies overridden."""
    app.dependency_overrides[get_context_service] = lambda: context_service
    app.dependency_overrides[get_indexing_service] = lambda: indexing_service
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
    app.dependency_overrides.clear()


def parse_events(body: str) -> list[dict]:
    return [
        json.loads(line[len("data: "):])
        for line in body.splitlines()
        if line.startswith("data: ")
    ]


async def test_health_check_returns_healthy(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


async def test_search_returns_contexts(client: AsyncClient, context_service):
    response = await client.post(
        "/api/context/search",
        json={
            "question": "How do I stake?",
            "scope_key": "team-a",
            "mode": "agent",
            "agent_id": "agent-7",
            "related_addresses": ["0xabc"],
            "conversation_context": [{"author": "alice", "content": "hi"}],
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body[0]["name"] == "Staking"
    assert body[0]["score"] == 9

    kwargs = context_service.find_relevant_context.call_args.kwargs
    assert kwargs["mode"] == RetrievalMode.AGENT
    assert kwargs["agent_id"] == "agent-7"
    assert kwargs["related_addresses"] == ["0xabc"]
    assert kwargs["conversation_context"][0].author == "alice"


async def test_search_pipeline_failure_is_generic_502(client: AsyncClient, context_service):
    context_service.find_relevant_context.side_effect = EmbeddingFailure("provider down")

    response = await client.post(
        "/api/context/search", json={"question": "q", "scope_key": "team-a"}
    )

    assert response.status_code == 502
    assert response.json()["detail"] == "Failed to generate a response"


async def test_search_requires_scope(client: AsyncClient):
    response = await client.post("/api/context/search", json={"question": "q"})

    assert response.status_code == 422


async def test_answer_stream_emits_chunks_then_done(client: AsyncClient):
    app.dependency_overrides[get_answer_generator] = lambda: FakeGenerator(["Hel", "lo"])

    response = await client.post(
        "/api/context/answer/stream", json={"question": "q", "scope_key": "team-a"}
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert parse_events(response.text) == [
        {"type": "answer_chunk", "content": "Hel"},
        {"type": "answer_chunk", "content": "lo"},
        {"type": "done"},
    ]


async def test_answer_stream_reports_generic_error(client: AsyncClient):
    app.dependency_overrides[get_answer_generator] = lambda: FakeGenerator(
        ["partial"], error=LLMRateLimitError("slow down")
    )

    response = await client.post(
        "/api/context/answer/stream", json={"question": "q", "scope_key": "team-a"}
    )

    events = parse_events(response.text)
    assert events[-1] == {"type": "error", "message": "Failed to generate a response"}
    assert {"type": "done"} not in events


async def test_index_returns_count(client: AsyncClient, indexing_service):
    response = await client.post(
        "/api/context/index",
        json={
            "scope_key": "team-a",
            "items": [
                {"id": "a", "content": "Staking guide", "name": "Guide"},
                {"id": "b", "content": "ABI", "name": "Token 0xabc", "type": "abi"},
            ],
        },
    )

    assert response.status_code == 200
    assert response.json() == {"indexed": 2}
    scope_key, items = indexing_service.index.call_args.args
    assert scope_key == "team-a"
    assert [item.id for item in items] == ["a", "b"]
    assert items[1].type.value == "abi"


async def test_index_embedding_failure_is_502(client: AsyncClient, indexing_service):
    indexing_service.index.side_effect = EmbeddingFailure("provider down")

    response = await client.post(
        "/api/context/index",
        json={"scope_key": "team-a", "items": [{"id": "a", "content": "x", "name": "a"}]},
    )

    assert response.status_code == 502


async def test_delete_index_removes_scope(client: AsyncClient, indexing_service):
    response = await client.delete("/api/context/index/team-a")

    assert response.status_code == 204
    indexing_service.delete_scope.assert_called_once_with("team-a")
