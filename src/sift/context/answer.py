"""Streaming answer generation grounded in retrieved context."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, Sequence
from typing import Protocol

from sift.context.errors import ContextPipelineError
from sift.context.schemas import RelevantContext, RetrievalMode, SurroundingMessage
from sift.context.service import ContextService

logger = logging.getLogger(__name__)

ANSWER_SYSTEM_PROMPT = """Hi! Let me tell you a bit about myself:

{description}

{context_section}

Here's how I communicate:
* I speak naturally and conversationally, like a knowledgeable colleague
* I keep things clear and to the point
* I use markdown (headers, lists, code blocks, bold) to keep answers organized
* If the reference material does not cover something, I say so instead of guessing"""

CONTEXT_SECTION = """To help you better, I have access to these relevant details:
{context}"""

NO_CONTEXT_SECTION = "I don't have reference material for this question, so I answer from general knowledge."


class StreamingClient(Protocol):
    def generate_stream(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AsyncGenerator[str, None]: ...


def format_contexts(contexts: list[RelevantContext]) -> str:
    """Number contexts as ``1.) ...`` lines, best first."""
    return "\n".join(f"{i}.) {ctx.content}" for i, ctx in enumerate(contexts, start=1))


def build_system_prompt(description: str, contexts: list[RelevantContext]) -> str:
    """Build the answering system prompt, with or without reference material."""
    if contexts:
        section = CONTEXT_SECTION.format(context=format_contexts(contexts))
    else:
        section = NO_CONTEXT_SECTION
    return ANSWER_SYSTEM_PROMPT.format(description=description, context_section=section)


def build_user_prompt(question: str, messages: list[SurroundingMessage] | None) -> str:
    """Fold prior messages into the user prompt ahead of the question."""
    if not messages:
        return question
    history = "\n".join(f"{m.author}: {m.content}" for m in messages)
    return f"Earlier in the conversation:\n{history}\n\nQuestion: {question}"


class AnswerGenerator:
    """Streams answers, using retrieved context when the pipeline succeeds."""

    def __init__(self, context_service: ContextService, llm: StreamingClient) -> None:
        self._context_service = context_service
        self._llm = llm

    async def stream_answer(
        self,
        question: str,
        scope_key: str,
        description: str,
        mode: RetrievalMode | str = RetrievalMode.GENERAL,
        agent_id: str | None = None,
        related_addresses: Sequence[str] | None = None,
        conversation_context: list[SurroundingMessage] | None = None,
        prompt_type: str = "default",
    ) -> AsyncGenerator[str, None]:
        """Stream answer tokens.

        A failed context lookup is logged and the answer falls back to a
        prompt without reference material. LLM errors while streaming
        propagate to the caller.

        Yields:
            Answer tokens as they are generated.
        """
        try:
            contexts = await self._context_service.find_relevant_context(
                question,
                scope_key,
                mode=mode,
                agent_id=agent_id,
                related_addresses=related_addresses,
                conversation_context=conversation_context,
                prompt_type=prompt_type,
            )
        except ContextPipelineError as e:
            logger.warning(f"Context lookup failed, answering without context: {e}")
            contexts = []

        system_prompt = build_system_prompt(description, contexts)
        prompt = build_user_prompt(question, conversation_context)
        async for token in self._llm.generate_stream(prompt, system_prompt=system_prompt):
            yield token
