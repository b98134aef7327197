"""Context retrieval API endpoints."""

import json
import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse

from sift.api.deps import get_answer_generator, get_context_service, get_indexing_service
from sift.api.schemas import AnswerRequest, ContextSearchRequest, IndexRequest, IndexResponse
from sift.context.answer import AnswerGenerator
from sift.context.errors import ContextPipelineError
from sift.context.schemas import RelevantContext
from sift.context.service import ContextService
from sift.indexing.service import ContextItem, IndexingService
from sift.llm.client import LLMError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/context", tags=["context"])

GENERIC_FAILURE_MESSAGE = "Failed to generate a response"


def _sse(payload: dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


@router.post("/search", response_model=list[RelevantContext])
async def search_context(
    request: ContextSearchRequest,
    service: ContextService = Depends(get_context_service),
) -> list[RelevantContext]:
    """Find the contexts most relevant to a question, best first."""
    try:
        return await service.find_relevant_context(
            request.question,
            request.scope_key,
            mode=request.mode,
            agent_id=request.agent_id,
            related_addresses=request.related_addresses,
            conversation_context=request.conversation_context,
            prompt_type=request.prompt_type,
        )
    except ContextPipelineError as e:
        logger.error(f"Context search failed for scope {request.scope_key}: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=GENERIC_FAILURE_MESSAGE,
        ) from e


async def _answer_events(
    request: AnswerRequest, generator: AnswerGenerator
) -> AsyncGenerator[str, None]:
    try:
        async for token in generator.stream_answer(
            request.question,
            request.scope_key,
            request.description,
            mode=request.mode,
            agent_id=request.agent_id,
            related_addresses=request.related_addresses,
            conversation_context=request.conversation_context,
            prompt_type=request.prompt_type,
        ):
            yield _sse({"type": "answer_chunk", "content": token})
    except (LLMError, ContextPipelineError) as e:
        logger.error(f"Answer stream failed for scope {request.scope_key}: {e}")
        yield _sse({"type": "error", "message": GENERIC_FAILURE_MESSAGE})
        return
    yield _sse({"type": "done"})


@router.post("/answer/stream")
async def stream_answer(
    request: AnswerRequest,
    generator: AnswerGenerator = Depends(get_answer_generator),
) -> StreamingResponse:
    """Stream an answer as Server-Sent Events."""
    return StreamingResponse(
        _answer_events(request, generator),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )


@router.post("/index", response_model=IndexResponse)
async def index_context(
    request: IndexRequest,
    service: IndexingService = Depends(get_indexing_service),
) -> IndexResponse:
    """Embed and store passages for a scope."""
    items = [
        ContextItem(
            id=item.id,
            content=item.content,
            name=item.name,
            location=item.location,
            type=item.type,
        )
        for item in request.items
    ]
    try:
        indexed = await service.index(request.scope_key, items)
    except ContextPipelineError as e:
        logger.error(f"Indexing failed for scope {request.scope_key}: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to index content",
        ) from e
    return IndexResponse(indexed=indexed)


@router.delete("/index/{scope_key}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_indexed_context(
    scope_key: str,
    service: IndexingService = Depends(get_indexing_service),
) -> None:
    """Remove every passage indexed for a scope."""
    service.delete_scope(scope_key)
