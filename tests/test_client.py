"""Tests for the OrthancClient request pipeline."""

from __future__ import annotations

import asyncio
import json
import time

import httpx
import pytest
from conftest import (
    BATCH_RESPONSE,
    MEMORY_RESPONSE,
    SYNC_RESPONSE,
    TEST_API_KEY,
    WEBHOOK,
    SleepRecorder,
    json_response,
)

from orthanc.client import OrthancClient
from orthanc.config import Settings
from orthanc.exceptions import ErrorKind, OrthancError
from orthanc.models import (
    BatchOperation,
    BatchRequest,
    DetailedQueryOptions,
    ExportOptions,
    MemoryQuery,
    QueryOptions,
    SyncOptions,
    WebhookCreateRequest,
    WebhookUpdateRequest,
)


def _export_page(ids: list[str], total: int, has_more: bool) -> dict:
    return {
        "userId": "user_1",
        "exportedAt": "2026-01-01T00:00:00Z",
        "total": total,
        "count": len(ids),
        "hasMore": has_more,
        "memories": [
            {"id": i, "content": f"memory {i}", "score": 1, "createdAt": "2026-01-01T00:00:00Z"}
            for i in ids
        ],
    }


class TestConstruction:
    """Tests for client configuration."""

    def test_requires_api_key(self) -> None:
        settings = Settings(_env_file=None, api_key=None)
        with pytest.raises(OrthancError) as exc_info:
            OrthancClient(settings=settings)
        assert exc_info.value.kind is ErrorKind.CONFIGURATION

    def test_keyword_overrides(self, test_settings: Settings) -> None:
        client = OrthancClient(
            settings=test_settings,
            endpoint="http://localhost:3000/",
            retries=5,
            timeout_seconds=2.5,
        )
        assert client.config.endpoint == "http://localhost:3000"
        assert client.config.retries == 5
        assert client.config.timeout_seconds == 2.5
        assert client.config.api_key == TEST_API_KEY
        assert client.cache is None

    @pytest.mark.asyncio
    async def test_sends_bearer_and_json_headers(self, make_client) -> None:
        client, handler = make_client([json_response(body=MEMORY_RESPONSE)])
        async with client:
            await client.query("user_1", "coffee")

        request = handler.requests[0]
        assert request.headers["Authorization"] == f"Bearer {TEST_API_KEY}"
        assert request.headers["Content-Type"] == "application/json"
        assert request.url == "https://api.orthanc.test/api/context"


class TestQuery:
    """Tests for query and its cache integration."""

    @pytest.mark.asyncio
    async def test_query_body_and_response(self, make_client) -> None:
        client, handler = make_client(
            [
                json_response(
                    body=MEMORY_RESPONSE,
                    headers={
                        "X-Request-ID": "req_123",
                        "X-RateLimit-Remaining": "99",
                        "X-RateLimit-Reset": "1700000000",
                    },
                )
            ]
        )
        async with client:
            result = await client.query("user_1", "coffee", QueryOptions(match_count=3))

        assert handler.body() == {
            "userId": "user_1",
            "messages": [{"role": "user", "content": "coffee"}],
            "options": {"matchCount": 3},
        }
        assert result.memories == ["User likes coffee"]
        assert result.scores == [0.9]
        assert result.query_type == "vector_search"
        assert result.request_metadata is not None
        assert result.request_metadata.request_id == "req_123"
        assert result.request_metadata.latency_ms == 12
        assert result.request_metadata.rate_limit_remaining == 99
        assert result.request_metadata.rate_limit_reset == 1700000000

    @pytest.mark.asyncio
    async def test_metadata_without_headers(self, make_client) -> None:
        client, _ = make_client([json_response(body={"memories": [], "scores": [], "count": 0})])
        async with client:
            result = await client.query("user_1", "coffee")

        assert result.request_metadata.request_id == ""
        assert result.request_metadata.rate_limit_remaining is None

    @pytest.mark.asyncio
    async def test_cache_hit_skips_network(self, make_client) -> None:
        client, handler = make_client([json_response(body=MEMORY_RESPONSE)], cache=True)
        async with client:
            first = await client.query("user_1", "coffee")
            second = await client.query("user_1", "coffee")

        assert handler.call_count == 1
        assert second == first
        assert second is not first

    @pytest.mark.asyncio
    async def test_cached_result_isolated_from_caller_changes(self, make_client) -> None:
        client, handler = make_client([json_response(body=MEMORY_RESPONSE)], cache=True)
        async with client:
            first = await client.query("user_1", "coffee")
            first.memories.append("changed by caller")
            second = await client.query("user_1", "coffee")
            second.memories.clear()
            third = await client.query("user_1", "coffee")

        assert handler.call_count == 1
        assert third.memories == ["User likes coffee"]
        assert third.request_metadata is not None

    @pytest.mark.asyncio
    async def test_cache_keyed_by_options(self, make_client) -> None:
        client, handler = make_client([json_response(body=MEMORY_RESPONSE)], cache=True)
        async with client:
            await client.query("user_1", "coffee", QueryOptions(match_count=1))
            await client.query("user_1", "coffee", QueryOptions(match_count=2))

        assert handler.call_count == 2

    @pytest.mark.asyncio
    async def test_cache_expires(self, make_client, fake_clock) -> None:
        client, handler = make_client([json_response(body=MEMORY_RESPONSE)], cache=True)
        async with client:
            await client.query("user_1", "coffee")
            fake_clock.advance(61)
            await client.query("user_1", "coffee")

        assert handler.call_count == 2

    @pytest.mark.asyncio
    async def test_sync_invalidates_cache(self, make_client) -> None:
        client, handler = make_client(
            [
                json_response(body=MEMORY_RESPONSE),
                json_response(body=MEMORY_RESPONSE),
                json_response(body=SYNC_RESPONSE),
            ],
            cache=True,
        )
        async with client:
            await client.query("user_1", "coffee")
            await client.query("user_2", "coffee")
            await client.sync_text("user_1", "User likes coffee a lot.")

            assert handler.requests[2].url.path == "/api/sync"
            assert client.cache.get("user_1", "coffee") is None
            assert client.cache.get("user_2", "coffee") is not None

    @pytest.mark.asyncio
    async def test_batch_invalidates_cache(self, make_client) -> None:
        client, handler = make_client(
            [
                json_response(body=MEMORY_RESPONSE),
                json_response(body=BATCH_RESPONSE),
                json_response(body=MEMORY_RESPONSE),
            ],
            cache=True,
        )
        async with client:
            await client.query("user_1", "coffee")
            await client.delete_memory("user_1", "mem_00000001")
            await client.query("user_1", "coffee")

        assert handler.call_count == 3

    @pytest.mark.asyncio
    async def test_failed_write_keeps_cache(self, make_client) -> None:
        client, _ = make_client(
            [
                json_response(body=MEMORY_RESPONSE),
                json_response(400, {"error": "Invalid operation"}),
            ],
            cache=True,
        )
        async with client:
            await client.query("user_1", "coffee")
            with pytest.raises(OrthancError):
                await client.create_memory("user_1", "text")

            assert client.cache.get("user_1", "coffee") is not None

    @pytest.mark.asyncio
    async def test_query_detailed_requests_metadata(self, make_client) -> None:
        client, handler = make_client(
            [
                json_response(
                    body={
                        "memories": [
                            {"id": "m1", "content": "likes coffee", "score": 0.8, "createdAt": "x"}
                        ],
                        "count": 1,
                        "queryType": "vector_search",
                        "latency_ms": 3,
                        "requestId": "req_d",
                        "pagination": {"offset": 0, "limit": 10, "total": 1, "hasMore": False},
                    }
                )
            ],
            cache=True,
        )
        async with client:
            result = await client.query_detailed(
                "user_1", "coffee", DetailedQueryOptions(limit=10)
            )

        assert handler.body()["options"] == {"includeMetadata": True, "limit": 10}
        assert result.memories[0].id == "m1"
        assert result.pagination.has_more is False
        assert len(client.cache) == 0

    @pytest.mark.asyncio
    async def test_query_batch_preserves_order(
        self, test_settings: Settings, sleep_recorder: SleepRecorder
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            query = json.loads(request.content)["messages"][0]["content"]
            return json_response(body={"memories": [query], "scores": [1.0], "count": 1})

        client = OrthancClient(
            settings=test_settings, transport=httpx.MockTransport(handler), sleep=sleep_recorder
        )
        async with client:
            results = await client.query_batch(
                [
                    MemoryQuery(user_id="user_1", query="first"),
                    {"user_id": "user_2", "query": "second"},
                    MemoryQuery(user_id="user_1", query="third"),
                ]
            )

        assert [r.memories[0] for r in results] == ["first", "second", "third"]

    @pytest.mark.asyncio
    async def test_query_batch_failure_does_not_cancel_others(
        self, test_settings: Settings, sleep_recorder: SleepRecorder
    ) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            query = json.loads(request.content)["messages"][0]["content"]
            seen.append(query)
            if query == "bad":
                return json_response(404, {"error": "User not found"})
            return json_response(body={"memories": [], "scores": [], "count": 0})

        client = OrthancClient(
            settings=test_settings, transport=httpx.MockTransport(handler), sleep=sleep_recorder
        )
        async with client:
            with pytest.raises(OrthancError) as exc_info:
                await client.query_batch(
                    [
                        MemoryQuery(user_id="user_1", query="bad"),
                        MemoryQuery(user_id="user_1", query="good"),
                    ]
                )

        assert exc_info.value.kind is ErrorKind.NOT_FOUND
        assert sorted(seen) == ["bad", "good"]


class TestRetries:
    """Tests for retry, backoff and error classification in the pipeline."""

    @pytest.mark.asyncio
    async def test_retries_server_error_then_succeeds(self, make_client, sleep_recorder) -> None:
        client, handler = make_client(
            [
                json_response(503, {"error": "Service unavailable"}),
                json_response(502, {"error": "Bad gateway"}),
                json_response(body=MEMORY_RESPONSE),
            ]
        )
        async with client:
            result = await client.query("user_1", "coffee")

        assert result.count == 1
        assert handler.call_count == 3
        assert sleep_recorder.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_retries(self, make_client, sleep_recorder) -> None:
        client, handler = make_client(
            [json_response(500, {"error": "boom"}, headers={"X-Request-ID": "req_fail"})]
        )
        async with client:
            with pytest.raises(OrthancError) as exc_info:
                await client.query("user_1", "coffee")

        error = exc_info.value
        assert error.kind is ErrorKind.SERVER
        assert error.message == "boom"
        assert error.request_id == "req_fail"
        assert handler.call_count == 3
        assert sleep_recorder.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_custom_retry_settings(self, make_client, sleep_recorder) -> None:
        client, handler = make_client(
            [json_response(500, {"error": "boom"})], retries=4, retry_delay_seconds=0.25
        )
        async with client:
            with pytest.raises(OrthancError):
                await client.health()

        assert handler.call_count == 4
        assert sleep_recorder.delays == [0.25, 0.5, 1.0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status", "kind"),
        [
            (400, ErrorKind.VALIDATION),
            (401, ErrorKind.AUTHENTICATION),
            (403, ErrorKind.AUTHORIZATION),
            (404, ErrorKind.NOT_FOUND),
        ],
    )
    async def test_client_errors_not_retried(
        self, make_client, sleep_recorder, status, kind
    ) -> None:
        client, handler = make_client([json_response(status, {"error": "nope"})])
        async with client:
            with pytest.raises(OrthancError) as exc_info:
                await client.query("user_1", "coffee")

        assert exc_info.value.kind is kind
        assert handler.call_count == 1
        assert sleep_recorder.delays == []

    @pytest.mark.asyncio
    async def test_rate_limit_retried_with_retry_after(self, make_client) -> None:
        client, handler = make_client(
            [json_response(429, {"error": "Too many requests"}, headers={"Retry-After": "7"})]
        )
        async with client:
            with pytest.raises(OrthancError) as exc_info:
                await client.query("user_1", "coffee")

        assert exc_info.value.kind is ErrorKind.RATE_LIMIT
        assert exc_info.value.retry_after == 7
        assert handler.call_count == 3

    @pytest.mark.asyncio
    async def test_usage_limit_not_retried(self, make_client) -> None:
        client, handler = make_client(
            [json_response(429, {"error": "Monthly quota used", "code": "USAGE_LIMIT_EXCEEDED"})]
        )
        async with client:
            with pytest.raises(OrthancError) as exc_info:
                await client.query("user_1", "coffee")

        assert exc_info.value.kind is ErrorKind.USAGE_LIMIT
        assert handler.call_count == 1

    @pytest.mark.asyncio
    async def test_rate_limit_counters_kept_on_failure(self, make_client) -> None:
        client, handler = make_client(
            [
                json_response(
                    429,
                    {"error": "Monthly quota used", "code": "USAGE_LIMIT_EXCEEDED"},
                    headers={
                        "X-Request-ID": "req_429",
                        "X-RateLimit-Remaining": "0",
                        "X-RateLimit-Reset": "1700000060",
                    },
                )
            ]
        )
        async with client:
            with pytest.raises(OrthancError) as exc_info:
                await client.query("user_1", "coffee")

        error = exc_info.value
        assert handler.call_count == 1
        assert error.metadata is not None
        assert error.metadata.request_id == "req_429"
        assert error.metadata.rate_limit_remaining == 0
        assert error.metadata.rate_limit_reset == 1700000060
        assert error.to_dict()["error"]["metadata"]["rate_limit_reset"] == 1700000060

    @pytest.mark.asyncio
    async def test_timeout_is_retried_and_classified(self, make_client, sleep_recorder) -> None:
        client, handler = make_client([httpx.ReadTimeout])
        async with client:
            with pytest.raises(OrthancError) as exc_info:
                await client.query("user_1", "coffee")

        assert exc_info.value.kind is ErrorKind.TIMEOUT
        assert exc_info.value.status == 408
        assert handler.call_count == 3
        assert sleep_recorder.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_connect_error_is_network_error(self, make_client) -> None:
        client, handler = make_client([httpx.ConnectError, json_response(body=MEMORY_RESPONSE)])
        async with client:
            result = await client.query("user_1", "coffee")

        assert result.count == 1
        assert handler.call_count == 2

    @pytest.mark.asyncio
    async def test_connect_error_exhausted(self, make_client) -> None:
        client, _ = make_client([httpx.ConnectError])
        async with client:
            with pytest.raises(OrthancError) as exc_info:
                await client.query("user_1", "coffee")

        assert exc_info.value.kind is ErrorKind.NETWORK
        assert exc_info.value.status == 0
        assert exc_info.value.metadata is None

    @pytest.mark.asyncio
    async def test_unparseable_error_body_uses_reason_phrase(self, make_client) -> None:
        client, _ = make_client([httpx.Response(403, text="<html>denied</html>")])
        async with client:
            with pytest.raises(OrthancError) as exc_info:
                await client.query("user_1", "coffee")

        assert exc_info.value.kind is ErrorKind.AUTHORIZATION
        assert exc_info.value.message == "Forbidden"


class TestHardTimeout:
    """Each attempt is bounded by one deadline covering the whole exchange."""

    @pytest.mark.asyncio
    async def test_trickling_body_is_cut_off(
        self, test_settings: Settings, sleep_recorder: SleepRecorder
    ) -> None:
        async def trickle():
            for byte in json.dumps(MEMORY_RESPONSE).encode():
                await asyncio.sleep(0.05)
                yield bytes([byte])

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, content=trickle(), headers={"Content-Type": "application/json"}
            )

        client = OrthancClient(
            settings=test_settings,
            timeout_seconds=0.2,
            retries=1,
            transport=httpx.MockTransport(handler),
            sleep=sleep_recorder,
        )
        started = time.monotonic()
        async with client:
            with pytest.raises(OrthancError) as exc_info:
                await client.query("user_1", "coffee")

        assert exc_info.value.kind is ErrorKind.TIMEOUT
        assert time.monotonic() - started < 1.5

    @pytest.mark.asyncio
    async def test_hung_attempt_is_retried(
        self, test_settings: Settings, sleep_recorder: SleepRecorder
    ) -> None:
        calls = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls == 1:
                await asyncio.sleep(10)
            return json_response(body=MEMORY_RESPONSE)

        client = OrthancClient(
            settings=test_settings,
            timeout_seconds=0.1,
            retries=2,
            transport=httpx.MockTransport(handler),
            sleep=sleep_recorder,
        )
        async with client:
            result = await client.query("user_1", "coffee")

        assert result.count == 1
        assert calls == 2
        assert sleep_recorder.delays == [1.0]


class TestWrites:
    """Tests for sync and batch helpers."""

    @pytest.mark.asyncio
    async def test_sync_messages_body(self, make_client) -> None:
        client, handler = make_client([json_response(body=SYNC_RESPONSE)])
        async with client:
            result = await client.sync_messages(
                "user_1",
                [
                    {"role": "user", "content": "I love hiking in the Alps"},
                    {"role": "assistant", "content": "That sounds fun!"},
                ],
                options=SyncOptions(category="hobbies", tags=["outdoors"]),
                metadata={"session": "s1"},
            )

        assert handler.body() == {
            "userId": "user_1",
            "messages": [
                {"role": "user", "content": "I love hiking in the Alps"},
                {"role": "assistant", "content": "That sounds fun!"},
            ],
            "options": {"category": "hobbies", "tags": ["outdoors"]},
            "metadata": {"session": "s1"},
        }
        assert result.status == "completed"
        assert result.result.memories_inserted == 2

    @pytest.mark.asyncio
    async def test_create_memory_body(self, make_client) -> None:
        client, handler = make_client([json_response(body=BATCH_RESPONSE)])
        async with client:
            result = await client.create_memory("user_1", "User prefers window seats")

        assert handler.requests[0].url.path == "/api/memories/batch"
        assert handler.body() == {
            "userId": "user_1",
            "operations": [{"action": "create", "text": "User prefers window seats"}],
        }
        assert result.results.created == 1
        assert result.errors is None

    @pytest.mark.asyncio
    async def test_update_memory_sends_only_supplied_fields(self, make_client) -> None:
        client, handler = make_client([json_response(body=BATCH_RESPONSE)])
        async with client:
            await client.update_memory("user_1", "mem_1", tags=["travel"])

        assert handler.body()["operations"] == [
            {"action": "update", "id": "mem_1", "updates": {"tags": ["travel"]}}
        ]

    @pytest.mark.asyncio
    async def test_delete_all_memories(self, make_client) -> None:
        client, handler = make_client([json_response(body=BATCH_RESPONSE)])
        async with client:
            await client.delete_all_memories("user_1", ["mem_1", "mem_2"])

        assert handler.body()["operations"] == [
            {"action": "delete", "id": "mem_1"},
            {"action": "delete", "id": "mem_2"},
        ]

    @pytest.mark.asyncio
    async def test_batch_errors_parsed(self, make_client) -> None:
        client, _ = make_client(
            [
                json_response(
                    body={
                        "processed": 2,
                        "results": {"created": 1, "updated": 0, "deleted": 0, "failed": 1},
                        "errors": [{"index": 1, "error": "Memory not found"}],
                    }
                )
            ]
        )
        async with client:
            result = await client.batch(
                BatchRequest(
                    user_id="user_1",
                    operations=[BatchOperation.create("hello there world"), BatchOperation.delete("x")],
                )
            )

        assert result.results.failed == 1
        assert result.errors[0].index == 1
        assert result.errors[0].error == "Memory not found"


class TestExport:
    """Tests for export and pagination."""

    @pytest.mark.asyncio
    async def test_export_query_params(self, make_client) -> None:
        client, handler = make_client([json_response(body=_export_page(["m1"], 1, False))])
        async with client:
            result = await client.export(
                ExportOptions(user_id="user_1", limit=50, format="json", include_embeddings=True)
            )

        params = handler.requests[0].url.params
        assert handler.requests[0].method == "GET"
        assert params["userId"] == "user_1"
        assert params["limit"] == "50"
        assert params["format"] == "json"
        assert params["includeEmbeddings"] == "true"
        assert "offset" not in params
        assert result.total == 1

    @pytest.mark.asyncio
    async def test_export_all_pages(self, make_client) -> None:
        client, handler = make_client(
            [
                json_response(body=_export_page(["m1", "m2"], 3, True)),
                json_response(body=_export_page(["m3"], 3, False)),
            ]
        )
        async with client:
            memories = await client.export_all("user_1", page_size=2)

        assert [m.id for m in memories] == ["m1", "m2", "m3"]
        assert handler.call_count == 2
        assert "offset" not in handler.requests[0].url.params
        assert handler.requests[1].url.params["offset"] == "2"
        assert handler.requests[1].url.params["limit"] == "2"


class TestWebhooksAndHealth:
    """Tests for webhook management and health endpoints."""

    @pytest.mark.asyncio
    async def test_create_webhook(self, make_client) -> None:
        client, handler = make_client([json_response(201, {"webhook": WEBHOOK})])
        async with client:
            webhook = await client.create_webhook(
                WebhookCreateRequest(
                    url="https://example.com/hook",
                    events=["memory.created", "memory.deleted"],
                    secret="shh",
                    name="Production Webhook",
                )
            )

        assert handler.requests[0].method == "POST"
        assert handler.body() == {
            "url": "https://example.com/hook",
            "events": ["memory.created", "memory.deleted"],
            "secret": "shh",
            "name": "Production Webhook",
        }
        assert webhook.id == "wh_1"
        assert webhook.subscribes_to("memory.created")
        assert not webhook.subscribes_to("memory.updated")

    @pytest.mark.asyncio
    async def test_list_get_update_delete(self, make_client) -> None:
        disabled = {**WEBHOOK, "enabled": False, "events": ["memory.created"]}
        client, handler = make_client(
            [
                json_response(body={"webhooks": [WEBHOOK]}),
                json_response(body={"webhook": WEBHOOK}),
                json_response(body={"webhook": disabled}),
                httpx.Response(204),
            ]
        )
        async with client:
            webhooks = await client.list_webhooks()
            fetched = await client.get_webhook("wh_1")
            updated = await client.update_webhook(
                "wh_1", WebhookUpdateRequest(events=["memory.created"], enabled=False)
            )
            deleted = await client.delete_webhook("wh_1")

        assert [w.id for w in webhooks] == ["wh_1"]
        assert fetched.name == "Production Webhook"
        assert updated.enabled is False
        assert deleted is None
        assert [r.method for r in handler.requests] == ["GET", "GET", "PATCH", "DELETE"]
        assert handler.requests[2].url.path == "/api/webhooks/wh_1"
        assert handler.body(2) == {"events": ["memory.created"], "enabled": False}

    @pytest.mark.asyncio
    async def test_health(self, make_client) -> None:
        client, _ = make_client(
            [
                json_response(
                    body={
                        "status": "healthy",
                        "timestamp": "2026-01-01T00:00:00Z",
                        "version": "1.4.0",
                        "uptime_seconds": 3600,
                        "latency_ms": 4,
                        "checks": {
                            "database": {"status": "up", "latency_ms": 2},
                            "memory": {"status": "up", "heapUsed": "120MB"},
                            "environment": {"status": "warning"},
                        },
                    }
                )
            ]
        )
        async with client:
            health = await client.health()

        assert health.is_healthy
        assert health.uptime_seconds == 3600
        assert health.checks.memory.heap_used == "120MB"
        assert health.checks.environment.status == "warning"
