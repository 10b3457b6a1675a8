"""Batched create/update/delete models for POST /api/memories/batch."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from .base import ApiModel, ApiRequest, ApiResponse
from .sync import SyncOptions

BatchAction = Literal["create", "update", "delete"]


class MemoryUpdates(ApiRequest):
    """Fields to change on an existing memory. Omitted fields are kept."""

    content: str | None = None
    category: str | None = None
    tags: list[str] | None = None
    metadata: dict[str, Any] | None = None


class BatchOperation(ApiRequest):
    """A single operation within a batch.

    ``create`` uses ``text`` and ``options``; ``update`` uses ``id`` and
    ``updates``; ``delete`` uses ``id``. Missing values are reported per
    operation by the server rather than rejected here.
    """

    action: BatchAction
    id: str | None = None
    text: str | None = None
    updates: MemoryUpdates | None = None
    options: SyncOptions | None = None

    @classmethod
    def create(cls, text: str, options: SyncOptions | None = None) -> BatchOperation:
        return cls(action="create", text=text, options=options)

    @classmethod
    def update(cls, memory_id: str, updates: MemoryUpdates) -> BatchOperation:
        return cls(action="update", id=memory_id, updates=updates)

    @classmethod
    def delete(cls, memory_id: str) -> BatchOperation:
        return cls(action="delete", id=memory_id)


class BatchRequest(ApiRequest):
    user_id: str = Field(min_length=1)
    operations: list[BatchOperation]


class BatchResults(ApiModel):
    created: int = 0
    updated: int = 0
    deleted: int = 0
    failed: int = 0


class BatchError(ApiModel):
    """Failure of the operation at ``index`` in the request."""

    index: int
    error: str


class BatchResponse(ApiResponse):
    processed: int
    results: BatchResults = Field(default_factory=BatchResults)
    errors: list[BatchError] | None = None
