"""LLM-backed batch relevance scoring."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Protocol

from sift.constants.scoring import (
    MAX_RELEVANCE_SCORE,
    MIN_RELEVANCE_SCORE,
    SCORING_BATCH_SIZE,
    SCORING_MAX_CONCURRENCY,
    SCORING_MAX_TOKENS,
    SCORING_TEMPERATURE,
)
from sift.context.errors import ScoringBatchFailure
from sift.context.schemas import ContextCandidate, RelevanceScore, SurroundingMessage
from sift.llm.client import LLMAuthenticationError, LLMError
from sift.retry import RetryPolicy, SleepFn

logger = logging.getLogger(__name__)

SCORING_SYSTEM_PROMPT = """You rate how useful reference passages are for answering a question.

For each context, output an integer from 0 to 10:
0 means completely irrelevant, 10 means it directly answers the question.
Judge each context on its own. Use the conversation, when given, only to
understand what the question refers to.

Output only the scores, comma-separated, in the order the contexts are given.
No labels, no explanations."""

_INTEGER_TOKEN = re.compile(r"[0-9]+")


class CompletionClient(Protocol):
    async def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str: ...


@dataclass(frozen=True)
class ParsedScores:
    """A scoring response that yielded exactly one score per candidate."""

    scores: tuple[int, ...]


@dataclass(frozen=True)
class ScoreParseError:
    """A scoring response that could not be used."""

    reason: str


ParseResult = ParsedScores | ScoreParseError


def parse_scores(text: str, expected: int) -> ParseResult:
    """Strictly parse a comma-separated score list.

    Tokens that are not plain integers in range are dropped; the response is
    valid only if exactly ``expected`` scores remain.
    """
    scores: list[int] = []
    for token in text.split(","):
        token = token.strip()
        if not _INTEGER_TOKEN.fullmatch(token):
            continue
        value = int(token)
        if MIN_RELEVANCE_SCORE <= value <= MAX_RELEVANCE_SCORE:
            scores.append(value)

    if len(scores) != expected:
        return ScoreParseError(
            f"expected {expected} scores, parsed {len(scores)} from {text.strip()[:200]!r}"
        )
    return ParsedScores(tuple(scores))


def format_conversation(messages: list[SurroundingMessage]) -> str:
    """Render prior messages as ``author (reply): text`` lines."""
    lines = []
    for message in messages:
        label = f"{message.author} (reply)" if message.is_reply else message.author
        lines.append(f"{label}: {message.content}")
    return "\n".join(lines)


def build_batch_prompt(
    batch: list[ContextCandidate],
    question: str,
    conversation_context: list[SurroundingMessage] | None = None,
) -> str:
    """Build the scoring prompt for one batch."""
    parts = [f'Question: "{question}"']

    if conversation_context:
        parts.append("Conversation so far:\n" + format_conversation(conversation_context))

    for number, candidate in enumerate(batch, start=1):
        parts.append(f"Context {number}:\n{candidate.content}")

    parts.append(
        f"Respond with exactly {len(batch)} integers from 0 to 10, comma-separated, "
        "one per context in order, and nothing else."
    )
    return "\n\n".join(parts)


class RelevanceScorer:
    """Scores candidates 0-10 against a question in fixed-size batches.

    Each batch is retried independently. The returned scores are always
    index-aligned with the input candidates; there is no partial result.
    """

    def __init__(
        self,
        llm: CompletionClient,
        batch_size: int = SCORING_BATCH_SIZE,
        retry_policy: RetryPolicy | None = None,
        max_concurrency: int = SCORING_MAX_CONCURRENCY,
        temperature: float = SCORING_TEMPERATURE,
        max_tokens: int = SCORING_MAX_TOKENS,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        """Initialize the scorer.

        Args:
            llm: Completion client used for scoring.
            batch_size: Candidates per prompt.
            retry_policy: Backoff schedule for failed batches.
            max_concurrency: Batches scored at once. 1 scores sequentially.
            temperature: Sampling temperature for scoring calls.
            max_tokens: Response token cap for scoring calls.
            sleep: Awaitable sleep used between retries.
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._llm = llm
        self._batch_size = batch_size
        self._retry_policy = retry_policy or RetryPolicy()
        self._max_concurrency = max(1, max_concurrency)
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._sleep = sleep

    async def score(
        self,
        candidates: list[ContextCandidate],
        question: str,
        conversation_context: list[SurroundingMessage] | None = None,
    ) -> list[RelevanceScore]:
        """Score every candidate.

        Returns:
            One RelevanceScore per candidate, in input order.

        Raises:
            ScoringBatchFailure: If any batch exhausts its retries.
        """
        if not candidates:
            return []

        batches = [
            candidates[start : start + self._batch_size]
            for start in range(0, len(candidates), self._batch_size)
        ]

        if self._max_concurrency == 1:
            batch_scores = []
            for batch_index, batch in enumerate(batches):
                batch_scores.append(
                    await self._score_batch(batch_index, batch, question, conversation_context)
                )
        else:
            semaphore = asyncio.Semaphore(self._max_concurrency)

            async def run(batch_index: int, batch: list[ContextCandidate]) -> tuple[int, ...]:
                async with semaphore:
                    return await self._score_batch(
                        batch_index, batch, question, conversation_context
                    )

            tasks = [asyncio.ensure_future(run(i, batch)) for i, batch in enumerate(batches)]
            try:
                # gather preserves argument order regardless of completion order
                batch_scores = list(await asyncio.gather(*tasks))
            except BaseException:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise

        results: list[RelevanceScore] = []
        for batch_index, scores in enumerate(batch_scores):
            offset = batch_index * self._batch_size
            results.extend(
                RelevanceScore(index=offset + i, score=score) for i, score in enumerate(scores)
            )
        return results

    async def _score_batch(
        self,
        batch_index: int,
        batch: list[ContextCandidate],
        question: str,
        conversation_context: list[SurroundingMessage] | None,
    ) -> tuple[int, ...]:
        prompt = build_batch_prompt(batch, question, conversation_context)
        max_attempts = self._retry_policy.max_attempts
        reason = "no attempts made"

        for attempt in range(1, max_attempts + 1):
            try:
                response = await self._llm.generate(
                    prompt,
                    system_prompt=SCORING_SYSTEM_PROMPT,
                    temperature=self._temperature,
                    max_tokens=self._max_tokens,
                )
            except LLMAuthenticationError as e:
                raise ScoringBatchFailure(batch_index, attempt, str(e)) from e
            except LLMError as e:
                reason = f"LLM call failed: {e}"
            else:
                result = parse_scores(response, expected=len(batch))
                if isinstance(result, ParsedScores):
                    return result.scores
                reason = result.reason

            if attempt < max_attempts:
                delay = self._retry_policy.delay(attempt)
                logger.warning(
                    f"Scoring batch {batch_index} attempt {attempt} failed ({reason}). "
                    f"Retrying in {delay:.2f}s..."
                )
                await self._sleep(delay)

        logger.error(f"Scoring batch {batch_index} failed after {max_attempts} attempts: {reason}")
        raise ScoringBatchFailure(batch_index, max_attempts, reason)
