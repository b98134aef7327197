"""LiteLLM-based LLM client."""

import json
import logging
import time
from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from litellm import acompletion
from litellm.exceptions import (
    APIConnectionError,
    APIError,
    AuthenticationError,
    BadRequestError,
    InternalServerError,
    RateLimitError,
    ServiceUnavailableError,
    Timeout,
)

from sift.constants.llm import DEFAULT_TEMPERATURE, MAX_TOKENS

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Base exception for LLM client errors."""

    pass


class LLMConnectionError(LLMError):
    """Raised when unable to connect to the LLM provider."""

    pass


class LLMAuthenticationError(LLMError):
    """Raised when authentication with the LLM provider fails."""

    pass


class LLMRateLimitError(LLMError):
    """Raised when rate limited by the LLM provider."""

    pass


_RELEVANT_HEADERS = (
    "x-ratelimit-limit-requests",
    "x-ratelimit-limit-tokens",
    "x-ratelimit-remaining-requests",
    "x-ratelimit-remaining-tokens",
    "x-ratelimit-reset-requests",
    "x-ratelimit-reset-tokens",
    "retry-after",
    "x-request-id",
)


def extract_error_details(e: Exception) -> dict | None:
    """Extract HTTP details from LiteLLM exceptions.

    Args:
        e: The exception to extract details from.

    Returns:
        Dict with status_code, headers, and message if available.
    """
    details: dict = {}

    if hasattr(e, "status_code"):
        details["status_code"] = e.status_code

    response = getattr(e, "response", None)
    if response is not None:
        if hasattr(response, "status_code"):
            details["status_code"] = response.status_code
        if hasattr(response, "headers"):
            try:
                headers = {
                    k: v for k, v in dict(response.headers).items() if k.lower() in _RELEVANT_HEADERS
                }
                if headers:
                    details["response_headers"] = headers
            except (TypeError, ValueError):
                pass

    if hasattr(e, "llm_provider"):
        details["llm_provider"] = e.llm_provider

    if hasattr(e, "message"):
        details["message"] = str(e.message)

    return details if details else None


def translate_error(e: Exception) -> LLMError:
    """Map a LiteLLM exception onto the client's exception hierarchy."""
    if isinstance(e, AuthenticationError):
        return LLMAuthenticationError(f"Authentication failed: {e}")
    if isinstance(e, RateLimitError):
        return LLMRateLimitError(f"Rate limit exceeded: {e}")
    if isinstance(e, APIConnectionError):
        return LLMConnectionError(f"Connection failed: {e}")
    if isinstance(e, Timeout):
        return LLMConnectionError(f"Request timed out: {e}")
    if isinstance(e, (ServiceUnavailableError, InternalServerError)):
        return LLMConnectionError(f"Provider unavailable: {e}")
    return LLMError(f"LLM API error: {e}")


# Every LiteLLM exception the clients translate. Timeout, ServiceUnavailableError,
# InternalServerError and BadRequestError do not subclass APIError.
LITELLM_ERRORS = (
    AuthenticationError,
    RateLimitError,
    APIConnectionError,
    Timeout,
    ServiceUnavailableError,
    InternalServerError,
    BadRequestError,
    APIError,
)


class LLMClient:
    """Unified LLM client supporting multiple providers via LiteLLM."""

    def __init__(
        self,
        provider: str,
        model: str,
        api_key: str | None = None,
        endpoint: str | None = None,
        log_path: Path | None = None,
        default_temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = MAX_TOKENS,
    ):
        """Initialize LLM client.

        Args:
            provider: LLM provider (openai, anthropic, google, ollama).
            model: Model name.
            api_key: Optional API key (uses env var if not provided).
            endpoint: Optional custom endpoint (for Ollama).
            log_path: Optional path to JSONL log file for query logging.
            default_temperature: Temperature used when a call does not set one.
            max_tokens: Response token cap used when a call does not set one.
        """
        self.provider = provider
        self.model = model
        self.api_key = api_key
        self.endpoint = endpoint
        self.log_path = log_path
        self.default_temperature = default_temperature
        self.max_tokens = max_tokens

    def _log_query(
        self,
        system_prompt: str | None,
        prompt: str,
        temperature: float,
        max_tokens: int,
        response: str | None,
        duration_ms: int,
        error: str | None,
        error_details: dict | None = None,
    ) -> None:
        """Append a query record to the JSONL log file, if one is configured."""
        if not self.log_path:
            return

        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "provider": self.provider,
            "model": self.model,
            "request": {
                "system_prompt": system_prompt,
                "prompt": prompt,
                "temperature": temperature,
                "max_tokens": max_tokens,
            },
            "response": response,
            "duration_ms": duration_ms,
            "error": error,
        }

        if error_details:
            entry["error_details"] = error_details

        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry) + "\n")
        except OSError as e:
            # Don't let logging failures break the application
            logger.debug(f"Could not write LLM query log: {e}")

    def _get_model_string(self) -> str:
        """Get LiteLLM model string.

        Returns:
            Model string in provider/model format.
        """
        if self.provider == "openai":
            return self.model  # OpenAI is default
        elif self.provider == "ollama":
            return f"ollama/{self.model}"
        else:
            return f"{self.provider}/{self.model}"

    def _build_kwargs(
        self,
        prompt: str,
        system_prompt: str | None,
        temperature: float,
        max_tokens: int,
    ) -> dict[str, Any]:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs: dict[str, Any] = {
            "model": self._get_model_string(),
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        if self.api_key:
            kwargs["api_key"] = self.api_key

        if self.endpoint and self.provider == "ollama":
            kwargs["api_base"] = self.endpoint

        return kwargs

    async def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Generate completion from prompt.

        Args:
            prompt: User prompt.
            system_prompt: Optional system prompt.
            temperature: Sampling temperature.
            max_tokens: Maximum response tokens.

        Returns:
            Generated text response.

        Raises:
            LLMError: Or one of its subclasses when the provider call fails.
        """
        temperature = self.default_temperature if temperature is None else temperature
        max_tokens = self.max_tokens if max_tokens is None else max_tokens
        kwargs = self._build_kwargs(prompt, system_prompt, temperature, max_tokens)

        start_time = time.perf_counter()
        try:
            response = await acompletion(**kwargs)
        except LITELLM_ERRORS as e:
            duration_ms = int((time.perf_counter() - start_time) * 1000)
            self._log_query(
                system_prompt,
                prompt,
                temperature,
                max_tokens,
                response=None,
                duration_ms=duration_ms,
                error=str(e),
                error_details=extract_error_details(e),
            )
            raise translate_error(e) from e

        result: str = str(response.choices[0].message.content or "")
        duration_ms = int((time.perf_counter() - start_time) * 1000)
        self._log_query(
            system_prompt,
            prompt,
            temperature,
            max_tokens,
            response=result,
            duration_ms=duration_ms,
            error=None,
        )
        return result

    async def generate_stream(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AsyncGenerator[str, None]:
        """Generate completion with streaming tokens.

        Args:
            prompt: User prompt.
            system_prompt: Optional system prompt.
            temperature: Sampling temperature.
            max_tokens: Maximum response tokens.

        Yields:
            Individual tokens as they are generated.
        """
        temperature = self.default_temperature if temperature is None else temperature
        max_tokens = self.max_tokens if max_tokens is None else max_tokens
        kwargs = self._build_kwargs(prompt, system_prompt, temperature, max_tokens)
        kwargs["stream"] = True

        start_time = time.perf_counter()
        accumulated_tokens: list[str] = []
        error_msg: str | None = None
        error_details: dict | None = None

        try:
            response = await acompletion(**kwargs)
            async for chunk in response:
                content = chunk.choices[0].delta.content
                if content:
                    accumulated_tokens.append(content)
                    yield content
        except LITELLM_ERRORS as e:
            error_msg = str(e)
            error_details = extract_error_details(e)
            raise translate_error(e) from e
        finally:
            duration_ms = int((time.perf_counter() - start_time) * 1000)
            self._log_query(
                system_prompt,
                prompt,
                temperature,
                max_tokens,
                response="".join(accumulated_tokens) if accumulated_tokens else None,
                duration_ms=duration_ms,
                error=error_msg,
                error_details=error_details,
            )
