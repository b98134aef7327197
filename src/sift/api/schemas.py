"""Pydantic schemas for API requests and responses."""

from pydantic import BaseModel, Field

from sift.context.schemas import ContextType, RetrievalMode, SurroundingMessage


class ContextSearchRequest(BaseModel):
    """Request to find the contexts relevant to a question."""

    question: str = Field(..., min_length=1, description="The user's question")
    scope_key: str = Field(..., min_length=1, description="Tenant whose content is searched")
    mode: RetrievalMode = RetrievalMode.GENERAL
    agent_id: str | None = Field(default=None, description="Agent for agent-mode retrieval")
    related_addresses: list[str] = Field(default_factory=list)
    conversation_context: list[SurroundingMessage] = Field(default_factory=list)
    prompt_type: str = "default"


class AnswerRequest(ContextSearchRequest):
    """Request to stream an answer grounded in retrieved context."""

    description: str = Field(
        default="I am a helpful assistant.",
        description="Persona shown to the answering model",
    )


class IndexItem(BaseModel):
    """A passage to index."""

    id: str = Field(..., min_length=1)
    content: str
    name: str
    location: str = ""
    type: ContextType = ContextType.DOCUMENT


class IndexRequest(BaseModel):
    """Request to index passages for a scope."""

    scope_key: str = Field(..., min_length=1)
    items: list[IndexItem]


class IndexResponse(BaseModel):
    """Result of an indexing request."""

    indexed: int
