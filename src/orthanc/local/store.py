"""In-process memory store for development and testing.

Implements the service's logical operations (query, sync, batch, export)
against a dictionary, with no network, cache or persistence. Results use the
same response models as ``OrthancClient``.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from orthanc.exceptions import OrthancError
from orthanc.models import (
    BatchError,
    BatchOperation,
    BatchRequest,
    BatchResponse,
    BatchResults,
    ExportResponse,
    Memory,
    MemoryResponse,
    QueryOptions,
    SyncOptions,
    SyncRequest,
    SyncResponse,
    SyncResult,
)

from .scoring import detect_query_type, is_memorable_message, similarity, split_sentences

logger = logging.getLogger(__name__)

DEFAULT_MATCH_THRESHOLD = 0.1
DEFAULT_MATCH_COUNT = 5


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _local_request_id() -> str:
    return f"local_{int(time.time() * 1000)}"


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


@dataclass
class StoredMemory:
    """A memory record owned by the store. ``user_id`` never changes."""

    id: str
    user_id: str
    content: str
    created_at: datetime
    updated_at: datetime
    category: str | None = None
    tags: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_memory(self, score: float = 1.0) -> Memory:
        return Memory(
            id=self.id,
            content=self.content,
            score=score,
            created_at=self.created_at.isoformat(),
            updated_at=self.updated_at.isoformat(),
            category=self.category,
            tags=list(self.tags),
            metadata=dict(self.metadata),
        )


class LocalMemoryStore:
    """Dictionary-backed memory store.

    Memory ids come from a counter (``mem_00000001``, ...) that only
    ``clear()`` resets, so ids are never reused after deletes.

    Mutations hold a lock; reads take a snapshot under the same lock and
    score outside it, so the store can be shared between threads.

    Example:
        ```python
        store = LocalMemoryStore()
        store.sync(SyncRequest(user_id="user_1", text="User likes coffee."))
        store.query("user_1", "coffee").memories  # ["User likes coffee"]
        ```
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = _utc_now,
        request_id_factory: Callable[[], str] = _local_request_id,
    ) -> None:
        """Initialize an empty store.

        Args:
            clock: Returns the current time for record timestamps.
            request_id_factory: Produces request ids for responses.
        """
        self._clock = clock
        self._request_id = request_id_factory
        self._memories: dict[str, StoredMemory] = {}
        self._id_counter = 0
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _next_id(self) -> str:
        self._id_counter += 1
        return f"mem_{self._id_counter:08d}"

    def _insert(
        self,
        user_id: str,
        content: str,
        options: SyncOptions | None,
        metadata: dict[str, Any] | None,
    ) -> StoredMemory:
        now = self._clock()
        memory = StoredMemory(
            id=self._next_id(),
            user_id=user_id,
            content=content,
            created_at=now,
            updated_at=now,
            category=options.category if options else None,
            tags=list(options.tags or []) if options else [],
            metadata=dict(metadata or {}),
        )
        self._memories[memory.id] = memory
        return memory

    def _snapshot(self, user_id: str | None = None) -> list[StoredMemory]:
        with self._lock:
            memories = list(self._memories.values())
        if user_id is None:
            return memories
        return [m for m in memories if m.user_id == user_id]

    def _owned(self, memory_id: str, user_id: str) -> StoredMemory:
        memory = self._memories.get(memory_id)
        if memory is None or memory.user_id != user_id:
            raise OrthancError.not_found("Memory not found")
        return memory

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def query(
        self,
        user_id: str,
        query: str,
        options: QueryOptions | None = None,
    ) -> MemoryResponse:
        """Rank a user's memories by word overlap with the query.

        Args:
            user_id: Only this user's memories are considered.
            query: Query text.
            options: ``match_threshold`` (default 0.1) and ``match_count``
                (default 5).

        Returns:
            Matching contents sorted by descending score. Ties keep
            insertion order.
        """
        started = time.perf_counter()
        options = options or QueryOptions()
        threshold = (
            options.match_threshold
            if options.match_threshold is not None
            else DEFAULT_MATCH_THRESHOLD
        )
        limit = options.match_count or DEFAULT_MATCH_COUNT

        scored = [(memory, similarity(query, memory.content)) for memory in self._snapshot(user_id)]
        matches = sorted(
            (item for item in scored if item[1] >= threshold),
            key=lambda item: item[1],
            reverse=True,
        )[:limit]

        return MemoryResponse(
            memories=[memory.content for memory, _ in matches],
            scores=[score for _, score in matches],
            count=len(matches),
            query_type=detect_query_type(query),
            latency_ms=_elapsed_ms(started),
            request_id=self._request_id(),
        )

    def sync(self, request: SyncRequest) -> SyncResponse:
        """Store sentences from raw text and substantive user messages.

        Text is split on runs of ``.``, ``!`` and ``?``; segments of ten
        characters or fewer are dropped. Only ``user`` messages longer than
        ten characters are kept.
        """
        started = time.perf_counter()
        created = 0

        with self._lock:
            if request.text:
                for sentence in split_sentences(request.text):
                    self._insert(request.user_id, sentence, request.options, request.metadata)
                    created += 1

            for message in request.messages or []:
                if is_memorable_message(message.role, message.content):
                    self._insert(
                        request.user_id, message.content, request.options, request.metadata
                    )
                    created += 1

        logger.debug("Local sync stored %d memories for user %s", created, request.user_id)
        return SyncResponse(
            status="completed",
            message="Memories synced successfully",
            request_id=self._request_id(),
            input_format="text" if request.text else "messages",
            result=SyncResult(
                facts_extracted=created,
                memories_inserted=created,
                memories_updated=0,
                memories_skipped=0,
                latency_ms=_elapsed_ms(started),
            ),
        )

    def _apply(self, user_id: str, operation: BatchOperation, results: BatchResults) -> None:
        if operation.action == "create":
            if not operation.text:
                raise OrthancError.validation(
                    "Text is required for create operation", field="text"
                )
            self._insert(user_id, operation.text, operation.options, None)
            results.created += 1
            return

        if not operation.id:
            raise OrthancError.validation(
                f"ID is required for {operation.action} operation", field="id"
            )
        memory = self._owned(operation.id, user_id)

        if operation.action == "update":
            updates = operation.updates
            if updates is not None:
                if updates.content is not None:
                    memory.content = updates.content
                if updates.category is not None:
                    memory.category = updates.category
                if updates.tags is not None:
                    memory.tags = list(updates.tags)
                if updates.metadata is not None:
                    memory.metadata.update(updates.metadata)
            memory.updated_at = self._clock()
            results.updated += 1
        else:
            del self._memories[memory.id]
            results.deleted += 1

    def batch(self, request: BatchRequest) -> BatchResponse:
        """Apply operations in order; each failure is recorded, not raised.

        Returns:
            Per-action counters and, when any operation failed, a list of
            ``(index, error)`` entries.
        """
        results = BatchResults()
        errors: list[BatchError] = []

        with self._lock:
            for index, operation in enumerate(request.operations):
                try:
                    self._apply(request.user_id, operation, results)
                except OrthancError as e:
                    results.failed += 1
                    errors.append(BatchError(index=index, error=e.message))

        if errors:
            logger.debug(
                "Local batch for user %s had %d failed operations", request.user_id, len(errors)
            )
        return BatchResponse(
            processed=len(request.operations),
            results=results,
            errors=errors or None,
        )

    def export(self, user_id: str | None = None) -> ExportResponse:
        """Export a user's memories, or every memory when ``user_id`` is None.

        All records are returned in one page with a score of 1.
        """
        memories = [memory.to_memory() for memory in self._snapshot(user_id)]
        return ExportResponse(
            user_id=user_id,
            exported_at=self._clock().isoformat(),
            total=len(memories),
            count=len(memories),
            has_more=False,
            memories=memories,
        )

    def clear(self) -> None:
        """Drop every memory and restart id numbering."""
        with self._lock:
            self._memories.clear()
            self._id_counter = 0

    def clear_user(self, user_id: str) -> int:
        """Drop one user's memories. Id numbering continues.

        Returns:
            Number of memories removed.
        """
        with self._lock:
            doomed = [mid for mid, memory in self._memories.items() if memory.user_id == user_id]
            for memory_id in doomed:
                del self._memories[memory_id]
        return len(doomed)

    def get_stats(self) -> dict[str, int]:
        """Count memories and distinct users across the whole store."""
        memories = self._snapshot()
        return {
            "total_memories": len(memories),
            "users": len({memory.user_id for memory in memories}),
        }

    def __len__(self) -> int:
        return len(self._memories)
