"""Context retrieval data model."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, Field


class ContextType(str, Enum):
    """Kinds of stored content."""

    COMPONENT = "component"
    ABI = "abi"
    DOCUMENT = "document"
    CODE = "code"
    VIDEO = "video"


class RetrievalMode(str, Enum):
    """Retrieval strategy selector."""

    GENERAL = "general"
    AGENT = "agent"


@dataclass
class ContextCandidate:
    """A retrieved content unit before relevance filtering.

    ``similarity`` is a distance despite its name: lower means closer.
    """

    id: str
    content: str
    name: str
    location: str
    type: ContextType
    similarity: float
    adjusted_similarity: float
    original_location: str | None = None


@dataclass(frozen=True)
class RelevanceScore:
    """Score assigned to the candidate at ``index`` in the scored list."""

    index: int
    score: int


@dataclass(frozen=True)
class AgentContext:
    """Agent-mode retrieval parameters."""

    agent_id: str
    related_addresses: tuple[str, ...] = field(default_factory=tuple)


class SurroundingMessage(BaseModel):
    """A prior conversation message shown to the scorer."""

    author: str = Field(..., description="Display name of the message author")
    content: str = Field(..., description="Message text")
    is_reply: bool = Field(False, description="Whether the message replies to the bot")


class RelevantContext(BaseModel):
    """A context passage surfaced to the answer generator."""

    content: str
    name: str
    location: str = ""
    type: ContextType = ContextType.COMPONENT
    score: int = Field(..., ge=0, le=10)
