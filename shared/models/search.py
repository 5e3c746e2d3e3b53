"""Pydantic models for the query boundary."""

from enum import Enum

from pydantic import BaseModel, Field, field_validator


class SearchSource(str, Enum):
    """Knowledge sources the retrieval router can answer from."""

    FAQ = "faq"
    DOCUMENTS = "documents"
    WEB = "web"


class ConversationTurn(BaseModel):
    role: str
    content: str


class QueryRequest(BaseModel):
    """Incoming natural language question from the chat/generation frontend.

    ``search_order`` and ``sensitivity`` left unset take the configured
    ``SEARCH_ORDER`` and ``SEARCH_SENSITIVITY``.
    """

    query: str = Field(min_length=1)
    owner_id: str
    search_order: list[SearchSource] | None = None
    sensitivity: float | None = Field(default=None, ge=0.3, le=1.0)
    folder_ids: list[str] = []
    category: str | None = None
    conversation: list[ConversationTurn] = []

    @field_validator("search_order")
    @classmethod
    def _dedupe_order(cls, value: list[SearchSource] | None) -> list[SearchSource] | None:
        return None if value is None else list(dict.fromkeys(value))


class SearchResultItem(BaseModel):
    """One piece of retrieved knowledge with its provenance."""

    source: SearchSource
    content: str
    score: float
    citation: str | None = None
    document_id: str | None = None
    chunk_id: str | None = None


class QueryResponse(BaseModel):
    """Routed answer returned to the caller. Never persisted by this service."""

    query: str
    source: SearchSource
    results: list[SearchResultItem]
    reason: str | None = None
    context: list[ConversationTurn] = []


class FAQMatch(BaseModel):
    """A FAQ entry scored against a query."""

    entry_id: str
    question: str
    answer: str
    category: str
    confidence: float
    priority: int = 0


class VectorHit(BaseModel):
    """A ranked chunk returned by the vector index."""

    chunk_id: str
    document_id: str
    score: float
    text: str | None = None
    title: str | None = None
    namespace: str
    chunk_index: int = 0


class WebAnswer(BaseModel):
    """Free-text answer returned by the web-search collaborator."""

    text: str
    citations: list[str] = []
