"""Ingestion models for POST /api/sync."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field, model_validator

from .base import ApiModel, ApiRequest, ApiResponse
from .memory import Message, SourceType

SyncStatus = Literal["queued", "processing", "completed"]
InputFormat = Literal["messages", "text"]


class SyncOptions(ApiRequest):
    """How ingested content should be processed and labelled.

    Attributes:
        source: Where the content came from.
        source_name: Free-form name of the source.
        event_timestamp: ISO timestamp of the original event.
        expires_at: ISO timestamp after which the memory is dropped.
        infer: Let the service extract facts instead of storing verbatim.
        sync: Wait for processing instead of queueing.
        tags: Tags applied to every created memory.
        importance: Importance hint (0.0-1.0).
        category: Category applied to every created memory.
    """

    source: SourceType | None = None
    source_name: str | None = None
    event_timestamp: str | None = None
    expires_at: str | None = None
    infer: bool | None = None
    sync: bool | None = None
    tags: list[str] | None = None
    importance: float | None = Field(default=None, ge=0.0, le=1.0)
    category: str | None = None


class SyncRequest(ApiRequest):
    """Body of POST /api/sync. Carries messages, raw text, or both."""

    user_id: str = Field(min_length=1)
    messages: list[Message] | None = None
    text: str | None = None
    options: SyncOptions | None = None
    metadata: dict[str, Any] | None = None

    @model_validator(mode="after")
    def _require_content(self) -> SyncRequest:
        if self.messages is None and self.text is None:
            raise ValueError("SyncRequest needs either messages or text")
        return self


class SyncResult(ApiModel):
    facts_extracted: int = 0
    memories_inserted: int = 0
    memories_updated: int = 0
    memories_skipped: int = 0
    latency_ms: float = Field(default=0, alias="latency_ms")


class SyncResponse(ApiResponse):
    """Outcome of an ingestion call."""

    status: SyncStatus
    message: str = ""
    request_id: str = ""
    input_format: InputFormat
    result: SyncResult | None = None
