"""Async client for the Orthanc memory service.

Every operation goes through one request pipeline: a single HTTP attempt
with a hard timeout, classification of failures into ``OrthancError``,
exponential-backoff retries for transient errors, and extraction of the
request id and rate-limit counters from response headers. Query results
may be cached; writes invalidate the cache for the affected user.

Example:
    ```python
    from orthanc import OrthancClient

    async with OrthancClient(api_key="sk-...") as client:
        await client.sync_text("user_123", "I moved to Lisbon last spring.")
        result = await client.query("user_123", "Where do I live?")
        print(result.memories, result.request_metadata)
    ```
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from types import TracebackType
from typing import Any, NamedTuple

import httpx

from . import __version__
from .cache import QueryCache
from .config import CacheConfig, Settings
from .config import settings as default_settings
from .exceptions import OrthancError, classify_error
from .models import (
    BatchOperation,
    BatchRequest,
    BatchResponse,
    DetailedMemoryResponse,
    DetailedQueryOptions,
    ExportOptions,
    ExportResponse,
    HealthResponse,
    Memory,
    MemoryQuery,
    MemoryResponse,
    MemoryUpdates,
    Message,
    QueryOptions,
    QueryRequest,
    RequestMetadata,
    SyncOptions,
    SyncRequest,
    SyncResponse,
    Webhook,
    WebhookCreateRequest,
    WebhookUpdateRequest,
)
from .retry import SleepFunc, request_retrying

logger = logging.getLogger(__name__)

EXPORT_PAGE_SIZE = 100

REQUEST_ID_HEADER = "X-Request-ID"
RATE_LIMIT_REMAINING_HEADER = "X-RateLimit-Remaining"
RATE_LIMIT_RESET_HEADER = "X-RateLimit-Reset"
RETRY_AFTER_HEADER = "Retry-After"


class ApiResult(NamedTuple):
    """Parsed body of a successful call plus its metadata."""

    data: dict[str, Any]
    metadata: RequestMetadata


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _coerce_messages(messages: Iterable[Message | Mapping[str, Any]]) -> list[Message]:
    return [m if isinstance(m, Message) else Message.model_validate(m) for m in messages]


class OrthancClient:
    """Client for the remote memory service.

    Configuration comes from ``Settings`` (``ORTHANC_*`` environment
    variables); explicit keyword arguments override it.
    """

    def __init__(
        self,
        api_key: str | None = None,
        endpoint: str | None = None,
        *,
        timeout_seconds: float | None = None,
        retries: int | None = None,
        retry_delay_seconds: float | None = None,
        cache: CacheConfig | None = None,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: SleepFunc = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: Bearer credential. Required here or in settings.
            endpoint: Base URL of the service.
            timeout_seconds: Hard timeout for each HTTP attempt.
            retries: Maximum attempts per call, including the first.
            retry_delay_seconds: Base delay for exponential backoff.
            cache: Query cache settings.
            settings: Base settings; defaults to the environment-derived ones.
            transport: Custom httpx transport (e.g. ``httpx.MockTransport``).
            sleep: Coroutine used for backoff waits.
            clock: Monotonic clock used by the query cache.

        Raises:
            OrthancError: With kind ``configuration`` if no API key is available.
        """
        base = settings or default_settings
        overrides = {
            "api_key": api_key,
            "endpoint": endpoint,
            "timeout_seconds": timeout_seconds,
            "retries": retries,
            "retry_delay_seconds": retry_delay_seconds,
            "cache": cache,
        }
        self._config = Settings.model_validate(
            {
                **base.model_dump(),
                **{key: value for key, value in overrides.items() if value is not None},
            }
        )

        if not self._config.has_api_key:
            raise OrthancError.configuration(
                "An API key is required. Pass api_key= or set ORTHANC_API_KEY."
            )

        self._sleep = sleep
        self._cache: QueryCache | None = (
            QueryCache(self._config.cache, clock=clock) if self._config.cache.enabled else None
        )
        self._http = httpx.AsyncClient(
            base_url=self._config.endpoint,
            headers={
                "Authorization": f"Bearer {self._config.api_key}",
                "Content-Type": "application/json",
                "User-Agent": f"orthanc-python/{__version__}",
            },
            timeout=httpx.Timeout(self._config.timeout_seconds),
            transport=transport,
        )

    @property
    def config(self) -> Settings:
        return self._config

    @property
    def cache(self) -> QueryCache | None:
        return self._cache

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._http.aclose()

    async def __aenter__(self) -> OrthancClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Request pipeline
    # ------------------------------------------------------------------

    async def _send(
        self,
        method: str,
        path: str,
        json: Mapping[str, Any] | None = None,
        params: Mapping[str, str] | None = None,
    ) -> ApiResult:
        """Perform a single HTTP attempt and classify its outcome."""
        try:
            async with asyncio.timeout(self._config.timeout_seconds):
                response = await self._http.request(method, path, json=json, params=params)
        except (httpx.TimeoutException, TimeoutError) as e:
            raise OrthancError.timeout(
                f"Request timed out after {self._config.timeout_seconds}s"
            ) from e
        except httpx.RequestError as e:
            raise OrthancError.network(str(e) or type(e).__name__) from e

        request_id = response.headers.get(REQUEST_ID_HEADER)
        rate_limit_remaining = _parse_int(response.headers.get(RATE_LIMIT_REMAINING_HEADER))
        rate_limit_reset = _parse_int(response.headers.get(RATE_LIMIT_RESET_HEADER))

        if not response.is_success:
            try:
                body = response.json()
            except ValueError:
                body = None
            if not isinstance(body, dict):
                body = {"error": response.reason_phrase}

            error = classify_error(
                response.status_code,
                body,
                request_id=request_id,
                retry_after=_parse_int(response.headers.get(RETRY_AFTER_HEADER)),
            )
            error.metadata = RequestMetadata(
                request_id=request_id or "",
                latency_ms=body.get("latency_ms") or 0,
                rate_limit_remaining=rate_limit_remaining,
                rate_limit_reset=rate_limit_reset,
            )
            logger.warning(
                "Orthanc request failed: %s %s (status %d, %s)",
                method,
                path,
                response.status_code,
                error.kind.value,
                extra={
                    "request_id": request_id,
                    "code": error.code,
                    "rate_limit_remaining": rate_limit_remaining,
                },
            )
            raise error

        if response.content:
            try:
                data = response.json()
            except ValueError as e:
                raise OrthancError.network(f"Invalid JSON in response to {method} {path}") from e
        else:
            data = {}

        if not isinstance(data, dict):
            data = {"data": data}

        metadata = RequestMetadata(
            request_id=request_id or "",
            latency_ms=data.get("latency_ms") or 0,
            rate_limit_remaining=rate_limit_remaining,
            rate_limit_reset=rate_limit_reset,
        )
        logger.debug(
            "Orthanc request succeeded: %s %s (status %d)",
            method,
            path,
            response.status_code,
            extra={"request_id": metadata.request_id},
        )
        return ApiResult(data=data, metadata=metadata)

    async def _request(
        self,
        method: str,
        path: str,
        json: Mapping[str, Any] | None = None,
        params: Mapping[str, str] | None = None,
    ) -> ApiResult:
        """Run one logical call, retrying transient failures with backoff."""
        retrying = request_retrying(
            self._config.retries,
            self._config.retry_delay_seconds,
            sleep=self._sleep,
        )
        async for attempt in retrying:
            with attempt:
                result = await self._send(method, path, json=json, params=params)
        return result

    def _invalidate(self, user_id: str) -> None:
        if self._cache is not None:
            self._cache.invalidate(user_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def query(
        self,
        user_id: str,
        query: str,
        options: QueryOptions | None = None,
    ) -> MemoryResponse:
        """Retrieve memories relevant to a query.

        Results are served from the cache when enabled and still fresh. The
        cache keeps its own copy, so callers may modify what they receive.

        Args:
            user_id: Owner of the memories.
            query: Natural-language query.
            options: Threshold, count and time filters.

        Returns:
            Matched memory contents with parallel scores.
        """
        if self._cache is not None:
            cached = self._cache.get(user_id, query, options)
            if cached is not None:
                logger.debug("Query cache hit for user %s", user_id)
                return cached.model_copy(deep=True)

        body = QueryRequest.for_query(user_id, query, options).to_wire()
        data, metadata = await self._request("POST", "/api/context", json=body)
        response = MemoryResponse.model_validate(data).with_metadata(metadata)

        if self._cache is not None:
            self._cache.set(user_id, query, response.model_copy(deep=True), options)

        return response

    async def query_detailed(
        self,
        user_id: str,
        query: str,
        options: DetailedQueryOptions | None = None,
    ) -> DetailedMemoryResponse:
        """Retrieve full memory records with pagination. Never cached."""
        detailed = (options or DetailedQueryOptions()).model_copy(
            update={"include_metadata": True}
        )
        body = QueryRequest.for_query(user_id, query, detailed).to_wire()
        data, metadata = await self._request("POST", "/api/context", json=body)
        return DetailedMemoryResponse.model_validate(data).with_metadata(metadata)

    async def query_batch(
        self, queries: Sequence[MemoryQuery | Mapping[str, Any]]
    ) -> list[MemoryResponse]:
        """Run several queries concurrently.

        All queries run to completion even if one fails; the first failure
        (in input order) is then raised.

        Returns:
            Responses in the same order as ``queries``.
        """
        items = [q if isinstance(q, MemoryQuery) else MemoryQuery.model_validate(q) for q in queries]
        results = await asyncio.gather(
            *(self.query(q.user_id, q.query, q.options) for q in items),
            return_exceptions=True,
        )

        for result in results:
            if isinstance(result, BaseException):
                raise result
        return list(results)  # type: ignore[arg-type]

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def sync(self, request: SyncRequest) -> SyncResponse:
        """Ingest messages or raw text and invalidate the user's cached queries."""
        data, metadata = await self._request("POST", "/api/sync", json=request.to_wire())
        self._invalidate(request.user_id)
        logger.info("Synced memories for user %s", request.user_id)
        return SyncResponse.model_validate(data).with_metadata(metadata)

    async def sync_messages(
        self,
        user_id: str,
        messages: Iterable[Message | Mapping[str, Any]],
        options: SyncOptions | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> SyncResponse:
        return await self.sync(
            SyncRequest(
                user_id=user_id,
                messages=_coerce_messages(messages),
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
        return await self.sync(
            SyncRequest(user_id=user_id, text=text, options=options, metadata=metadata)
        )

    # ------------------------------------------------------------------
    # Batched CRUD
    # ------------------------------------------------------------------

    async def batch(self, request: BatchRequest) -> BatchResponse:
        """Apply create/update/delete operations; failures are reported per item."""
        data, metadata = await self._request(
            "POST", "/api/memories/batch", json=request.to_wire()
        )
        self._invalidate(request.user_id)
        response = BatchResponse.model_validate(data).with_metadata(metadata)
        logger.info(
            "Batch processed for user %s: %d operations, %d failed",
            request.user_id,
            response.processed,
            response.results.failed,
        )
        return response

    async def create_memory(
        self, user_id: str, text: str, options: SyncOptions | None = None
    ) -> BatchResponse:
        return await self.batch(
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
        """Update the supplied fields of one memory; omitted fields are kept."""
        updates = MemoryUpdates(content=content, category=category, tags=tags, metadata=metadata)
        return await self.batch(
            BatchRequest(user_id=user_id, operations=[BatchOperation.update(memory_id, updates)])
        )

    async def delete_memory(self, user_id: str, memory_id: str) -> BatchResponse:
        return await self.batch(
            BatchRequest(user_id=user_id, operations=[BatchOperation.delete(memory_id)])
        )

    async def delete_all_memories(
        self, user_id: str, memory_ids: Iterable[str]
    ) -> BatchResponse:
        return await self.batch(
            BatchRequest(
                user_id=user_id,
                operations=[BatchOperation.delete(memory_id) for memory_id in memory_ids],
            )
        )

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    async def export(self, options: ExportOptions | None = None) -> ExportResponse:
        """Export one page of memories."""
        params = (options or ExportOptions()).to_params()
        data, metadata = await self._request("GET", "/api/memories/export", params=params)
        return ExportResponse.model_validate(data).with_metadata(metadata)

    async def export_all(self, user_id: str, page_size: int = EXPORT_PAGE_SIZE) -> list[Memory]:
        """Export every memory of a user by paging until the server reports no more.

        Returns:
            All memories in server order.
        """
        memories: list[Memory] = []
        offset = 0
        has_more = True

        while has_more:
            page = await self.export(ExportOptions(user_id=user_id, limit=page_size, offset=offset))
            memories.extend(page.memories)
            has_more = page.has_more
            offset += page_size

        logger.debug("Exported %d memories for user %s", len(memories), user_id)
        return memories

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    async def list_webhooks(self) -> list[Webhook]:
        data, _ = await self._request("GET", "/api/webhooks")
        return [Webhook.model_validate(item) for item in data.get("webhooks", [])]

    async def create_webhook(self, request: WebhookCreateRequest) -> Webhook:
        data, metadata = await self._request("POST", "/api/webhooks", json=request.to_wire())
        return Webhook.model_validate(data["webhook"]).with_metadata(metadata)

    async def get_webhook(self, webhook_id: str) -> Webhook:
        data, metadata = await self._request("GET", f"/api/webhooks/{webhook_id}")
        return Webhook.model_validate(data["webhook"]).with_metadata(metadata)

    async def update_webhook(self, webhook_id: str, request: WebhookUpdateRequest) -> Webhook:
        data, metadata = await self._request(
            "PATCH", f"/api/webhooks/{webhook_id}", json=request.to_wire()
        )
        return Webhook.model_validate(data["webhook"]).with_metadata(metadata)

    async def delete_webhook(self, webhook_id: str) -> None:
        await self._request("DELETE", f"/api/webhooks/{webhook_id}")

    # ------------------------------------------------------------------
    # Health and cache control
    # ------------------------------------------------------------------

    async def health(self) -> HealthResponse:
        data, metadata = await self._request("GET", "/api/health")
        return HealthResponse.model_validate(data).with_metadata(metadata)

    def clear_cache(self) -> None:
        if self._cache is not None:
            self._cache.clear()

    def invalidate_cache(self, user_id: str) -> None:
        self._invalidate(user_id)
