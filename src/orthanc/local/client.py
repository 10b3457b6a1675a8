"""Drop-in substitute for ``OrthancClient`` backed by ``LocalMemoryStore``."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from types import TracebackType
from typing import Any

from orthanc.models import (
    BatchOperation,
    BatchRequest,
    BatchResponse,
    ExportOptions,
    ExportResponse,
    Memory,
    MemoryQuery,
    MemoryResponse,
    MemoryUpdates,
    Message,
    QueryOptions,
    SyncOptions,
    SyncRequest,
    SyncResponse,
)

from .store import LocalMemoryStore


class LocalClient:
    """Async client with the same operations as ``OrthancClient``, no network.

    Example:
        ```python
        client = LocalClient()
        await client.sync_text("user_1", "User likes coffee. User likes hiking.")
        result = await client.query("user_1", "coffee")
        ```
    """

    def __init__(self, store: LocalMemoryStore | None = None) -> None:
        self._store = store or LocalMemoryStore()

    @property
    def store(self) -> LocalMemoryStore:
        return self._store

    async def __aenter__(self) -> LocalClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        return None

    async def close(self) -> None:
        return None

    async def query(
        self, user_id: str, query: str, options: QueryOptions | None = None
    ) -> MemoryResponse:
        return self._store.query(user_id, query, options)

    async def query_batch(
        self, queries: Sequence[MemoryQuery | Mapping[str, Any]]
    ) -> list[MemoryResponse]:
        items = [q if isinstance(q, MemoryQuery) else MemoryQuery.model_validate(q) for q in queries]
        return [self._store.query(q.user_id, q.query, q.options) for q in items]

    async def sync(self, request: SyncRequest) -> SyncResponse:
        return self._store.sync(request)

    async def sync_messages(
        self,
        user_id: str,
        messages: Iterable[Message | Mapping[str, Any]],
        options: SyncOptions | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> SyncResponse:
        return self._store.sync(
            SyncRequest(
                user_id=user_id,
                messages=[
                    m if isinstance(m, Message) else Message.model_validate(m) for m in messages
                ],
                options=options,
                metadata=metadata,
            )
        )

    async def sync_text(
        self,
        user_id: str,
        text: str,
        options: SyncOptions | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> SyncResponse:
        return self._store.sync(
            SyncRequest(user_id=user_id, text=text, options=options, metadata=metadata)
        )

    async def batch(self, request: BatchRequest) -> BatchResponse:
        return self._store.batch(request)

    async def create_memory(
        self, user_id: str, text: str, options: SyncOptions | None = None
    ) -> BatchResponse:
        return self._store.batch(
            BatchRequest(user_id=user_id, operations=[BatchOperation.create(text, options)])
        )

    async def update_memory(
        self,
        user_id: str,
        memory_id: str,
        *,
        content: str | None = None,
        category: str | None = None,
        tags: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> BatchResponse:
        updates = MemoryUpdates(content=content, category=category, tags=tags, metadata=metadata)
        return self._store.batch(
            BatchRequest(user_id=user_id, operations=[BatchOperation.update(memory_id, updates)])
        )

    async def delete_memory(self, user_id: str, memory_id: str) -> BatchResponse:
        return self._store.batch(
            BatchRequest(user_id=user_id, operations=[BatchOperation.delete(memory_id)])
        )

    async def delete_all_memories(
        self, user_id: str, memory_ids: Iterable[str]
    ) -> BatchResponse:
        return self._store.batch(
            BatchRequest(
                user_id=user_id,
                operations=[BatchOperation.delete(memory_id) for memory_id in memory_ids],
            )
        )

    async def export(self, options: ExportOptions | None = None) -> ExportResponse:
        """Export memories. Paging options are ignored; everything fits one page."""
        return self._store.export(options.user_id if options else None)

    async def export_all(self, user_id: str) -> list[Memory]:
        return self._store.export(user_id).memories

    def clear(self) -> None:
        self._store.clear()

    def clear_user(self, user_id: str) -> int:
        return self._store.clear_user(user_id)

    def get_stats(self) -> dict[str, int]:
        return self._store.get_stats()
