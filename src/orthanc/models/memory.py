"""Query models: options, retrieved memories and query responses."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field, SerializeAsAny

from .base import ApiModel, ApiRequest, ApiResponse

# How the service answered a query
QueryType = Literal[
    "graph_relation",
    "graph_list",
    "graph_who",
    "vector_search",
    "question_match",  # pre-computed question embeddings matched
    "hybrid",
]

TimeFilter = Literal["hour", "day", "week", "month", "year", "all"]

# Where ingested content came from
SourceType = Literal["api", "chat", "voice", "file_upload", "import", "webhook", "sdk"]


class QueryOptions(ApiRequest):
    """Options for a memory query.

    Attributes:
        match_threshold: Minimum similarity score (0.0-1.0) for a match.
        match_count: Maximum number of memories to return.
        time_filter: Restrict matches to a recent time window.
        include_metadata: Ask for full memory objects instead of content strings.
    """

    match_threshold: float | None = Field(default=None, ge=0.0, le=1.0)
    match_count: int | None = Field(default=None, ge=1)
    time_filter: TimeFilter | None = None
    include_metadata: bool | None = None


class DetailedQueryOptions(QueryOptions):
    """Query options with pagination for detailed queries."""

    offset: int | None = Field(default=None, ge=0)
    limit: int | None = Field(default=None, ge=1)


class Message(ApiModel):
    """A single chat turn."""

    role: str
    content: str


class Memory(ApiModel):
    """A memory record as returned by detailed queries and exports."""

    id: str
    content: str
    score: float
    created_at: str
    updated_at: str | None = None
    category: str | None = None
    tags: list[str] | None = None
    metadata: dict[str, Any] | None = None


class DateFilter(ApiModel):
    """Date range the service detected in a query."""

    start_date: str | None = None
    end_date: str | None = None
    detected: bool = False
    original_phrase: str | None = None


class MemoryResponse(ApiResponse):
    """Result of a query: matched contents with parallel scores."""

    memories: list[str] = Field(default_factory=list)
    scores: list[float] = Field(default_factory=list)
    count: int = 0
    query_type: QueryType = "vector_search"
    latency_ms: float = Field(default=0, alias="latency_ms")
    request_id: str = ""
    graph_answer: str | None = None
    date_filter: DateFilter | None = None
    pii_redacted: bool | None = None
    reranked: bool | None = None


class Pagination(ApiModel):
    offset: int
    limit: int
    total: int
    has_more: bool


class DetailedMemoryResponse(ApiResponse):
    """Result of a detailed query: full memory objects and pagination."""

    memories: list[Memory] = Field(default_factory=list)
    count: int = 0
    query_type: QueryType = "vector_search"
    latency_ms: float = Field(default=0, alias="latency_ms")
    request_id: str = ""
    graph_answer: str | None = None
    pagination: Pagination | None = None


class QueryRequest(ApiRequest):
    """Body of POST /api/context."""

    user_id: str = Field(min_length=1)
    messages: list[Message]
    options: SerializeAsAny[QueryOptions] | None = None

    @classmethod
    def for_query(
        cls, user_id: str, query: str, options: QueryOptions | None = None
    ) -> QueryRequest:
        """Wrap a query string in a single user turn."""
        return cls(
            user_id=user_id,
            messages=[Message(role="user", content=query)],
            options=options,
        )


class MemoryQuery(ApiModel):
    """One element of a batched query."""

    user_id: str = Field(min_length=1)
    query: str
    options: QueryOptions | None = None
