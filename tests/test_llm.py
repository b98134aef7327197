"""LLM client tests."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from litellm.exceptions import (
    APIConnectionError,
    AuthenticationError,
    BadRequestError,
    RateLimitError,
    ServiceUnavailableError,
    Timeout,
)

from sift.llm import (
    LLMAuthenticationError,
    LLMClient,
    LLMConnectionError,
    LLMError,
    LLMRateLimitError,
)


@pytest.fixture
def mock_completion():
    """Mock litellm completion response."""
    with patch("sift.llm.client.acompletion") as mock:
        mock.return_value = AsyncMock(
            choices=[
                AsyncMock(
                    message=AsyncMock(content="Test response")
                )
            ]
        )
        yield mock


class FakeStream:
    """Async iterator standing in for a LiteLLM streaming response."""

    def __init__(self, tokens: list[str | None]) -> None:
        self._chunks = [
            MagicMock(choices=[MagicMock(delta=MagicMock(content=token))]) for token in tokens
        ]

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._chunks:
            raise StopAsyncIteration
        return self._chunks.pop(0)


async def test_llm_client_generates_response(mock_completion):
    """LLM client generates response from prompt."""
    client = LLMClient(provider="openai", model="gpt-4o-mini")

    response = await client.generate("Test prompt")

    assert response == "Test response"
    mock_completion.assert_called_once()


async def test_llm_client_uses_configured_model(mock_completion):
    """LLM client uses configured provider and model."""
    client = LLMClient(provider="anthropic", model="claude-3-sonnet")

    await client.generate("Test")

    call_args = mock_completion.call_args
    assert call_args.kwargs["model"] == "anthropic/claude-3-sonnet"


async def test_llm_client_passes_system_prompt(mock_completion):
    """LLM client includes system prompt in messages."""
    client = LLMClient(provider="openai", model="gpt-4o")

    await client.generate(
        "User message",
        system_prompt="You rate passages",
    )

    messages = mock_completion.call_args.kwargs["messages"]
    assert messages[0] == {"role": "system", "content": "You rate passages"}
    assert messages[1] == {"role": "user", "content": "User message"}


async def test_llm_client_ollama_uses_endpoint(mock_completion):
    """Ollama models get the ollama/ prefix and the configured api_base."""
    client = LLMClient(provider="ollama", model="llama3", endpoint="http://gpu:11434")

    await client.generate("Test")

    kwargs = mock_completion.call_args.kwargs
    assert kwargs["model"] == "ollama/llama3"
    assert kwargs["api_base"] == "http://gpu:11434"


async def test_llm_client_applies_defaults_and_overrides(mock_completion):
    """Per-call temperature and token caps override client defaults."""
    client = LLMClient(
        provider="openai", model="gpt-4o-mini", default_temperature=0.5, max_tokens=3000
    )

    await client.generate("Test")
    assert mock_completion.call_args.kwargs["temperature"] == 0.5
    assert mock_completion.call_args.kwargs["max_tokens"] == 3000

    await client.generate("Test", temperature=0.1, max_tokens=50)
    assert mock_completion.call_args.kwargs["temperature"] == 0.1
    assert mock_completion.call_args.kwargs["max_tokens"] == 50


async def test_llm_client_raises_authentication_error():
    """LLM client raises LLMAuthenticationError on auth failure."""
    with patch("sift.llm.client.acompletion") as mock:
        mock.side_effect = AuthenticationError(
            message="Invalid API key",
            llm_provider="openai",
            model="gpt-4o",
        )
        client = LLMClient(provider="openai", model="gpt-4o")

        with pytest.raises(LLMAuthenticationError) as exc_info:
            await client.generate("Test")

        assert "Authentication failed" in str(exc_info.value)


async def test_llm_client_raises_rate_limit_error():
    """LLM client raises LLMRateLimitError on rate limit."""
    with patch("sift.llm.client.acompletion") as mock:
        mock.side_effect = RateLimitError(
            message="Rate limit exceeded",
            llm_provider="openai",
            model="gpt-4o",
        )
        client = LLMClient(provider="openai", model="gpt-4o")

        with pytest.raises(LLMRateLimitError) as exc_info:
            await client.generate("Test")

        assert "Rate limit exceeded" in str(exc_info.value)


async def test_llm_client_raises_connection_error():
    """LLM client raises LLMConnectionError when the provider is unreachable."""
    with patch("sift.llm.client.acompletion") as mock:
        mock.side_effect = APIConnectionError(
            message="Connection refused",
            llm_provider="openai",
            model="gpt-4o",
        )
        client = LLMClient(provider="openai", model="gpt-4o")

        with pytest.raises(LLMConnectionError):
            await client.generate("Test")


async def test_llm_client_logs_queries_to_jsonl(mock_completion, tmp_path):
    """Each call is appended to the JSONL log when a path is configured."""
    log_path = tmp_path / "logs" / "llm.jsonl"
    client = LLMClient(provider="openai", model="gpt-4o-mini", log_path=log_path)

    await client.generate("First")
    await client.generate("Second", system_prompt="System")

    lines = log_path.read_text().splitlines()
    assert len(lines) == 2
    entry = json.loads(lines[1])
    assert entry["request"]["prompt"] == "Second"
    assert entry["request"]["system_prompt"] == "System"
    assert entry["response"] == "Test response"
    assert entry["error"] is None


async def test_llm_client_streams_tokens():
    """generate_stream yields non-empty tokens in order."""
    with patch("sift.llm.client.acompletion") as mock:
        mock.return_value = FakeStream(["Hel", None, "lo", ""])
        client = LLMClient(provider="openai", model="gpt-4o")

        tokens = [token async for token in client.generate_stream("Hi")]

    assert tokens == ["Hel", "lo"]
    assert mock.call_args.kwargs["stream"] is True


async def test_llm_client_stream_translates_errors():
    """Errors raised when opening a stream are translated."""
    with patch("sift.llm.client.acompletion") as mock:
        mock.side_effect = RateLimitError(
            message="Slow down",
            llm_provider="openai",
            model="gpt-4o",
        )
        client = LLMClient(provider="openai", model="gpt-4o")

        with pytest.raises(LLMRateLimitError):
            async for _ in client.generate_stream("Hi"):
                pass


async def test_llm_client_timeout_is_a_connection_error():
    """A provider timeout surfaces as LLMConnectionError."""
    with patch("sift.llm.client.acompletion") as mock:
        mock.side_effect = Timeout(
            message="Request timed out",
            model="gpt-4o",
            llm_provider="openai",
        )
        client = LLMClient(provider="openai", model="gpt-4o")

        with pytest.raises(LLMConnectionError) as exc_info:
            await client.generate("Test")

        assert "timed out" in str(exc_info.value)


async def test_llm_client_service_unavailable_is_a_connection_error():
    """A 503 from the provider surfaces as LLMConnectionError."""
    with patch("sift.llm.client.acompletion") as mock:
        mock.side_effect = ServiceUnavailableError(
            message="Service unavailable",
            llm_provider="openai",
            model="gpt-4o",
        )
        client = LLMClient(provider="openai", model="gpt-4o")

        with pytest.raises(LLMConnectionError):
            async for _ in client.generate_stream("Hi"):
                pass


async def test_llm_client_bad_request_is_an_llm_error():
    """A rejected request surfaces as a plain LLMError."""
    with patch("sift.llm.client.acompletion") as mock:
        mock.side_effect = BadRequestError(
            message="Invalid request",
            model="gpt-4o",
            llm_provider="openai",
        )
        client = LLMClient(provider="openai", model="gpt-4o")

        with pytest.raises(LLMError) as exc_info:
            await client.generate("Test")

        assert not isinstance(exc_info.value, LLMConnectionError)
