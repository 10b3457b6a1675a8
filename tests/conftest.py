"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import json
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from orthanc.client import OrthancClient
from orthanc.config import CacheConfig, Settings

# Add tests directory to path so shared helpers can be imported
tests_dir = Path(__file__).parent
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))

TEST_ENDPOINT = "https://api.orthanc.test"
TEST_API_KEY = "test-api-key"


class FakeClock:
    """Manually advanced clock returning seconds."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(float(seconds))


class RecordingHandler:
    """httpx.MockTransport handler replaying a scripted list of outcomes.

    Each outcome is an ``httpx.Response`` or an exception class/instance to
    raise. The last outcome repeats once the script is exhausted.
    """

    def __init__(self, outcomes: list[Any]) -> None:
        self.outcomes = outcomes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.outcomes[min(len(self.requests), len(self.outcomes)) - 1]
        if isinstance(outcome, type) and issubclass(outcome, Exception):
            raise outcome("simulated failure", request=request)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def body(self, index: int = -1) -> dict[str, Any]:
        return json.loads(self.requests[index].content)


def json_response(
    status: int = 200,
    body: Any = None,
    headers: dict[str, str] | None = None,
) -> httpx.Response:
    return httpx.Response(status, json=body if body is not None else {}, headers=headers)


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(_env_file=None, api_key=TEST_API_KEY, endpoint=TEST_ENDPOINT)


@pytest.fixture
def make_client(
    test_settings: Settings,
    sleep_recorder: SleepRecorder,
    fake_clock: FakeClock,
) -> Callable[..., tuple[OrthancClient, RecordingHandler]]:
    """Build a client wired to a scripted mock transport."""

    def _make(
        outcomes: list[Any],
        cache: bool = False,
        **overrides: Any,
    ) -> tuple[OrthancClient, RecordingHandler]:
        handler = RecordingHandler(outcomes)
        client = OrthancClient(
            settings=test_settings,
            cache=CacheConfig(enabled=cache) if cache else None,
            transport=httpx.MockTransport(handler),
            sleep=sleep_recorder,
            clock=fake_clock,
            **overrides,
        )
        return client, handler

    return _make


MEMORY_RESPONSE = {
    "memories": ["User likes coffee"],
    "scores": [0.9],
    "count": 1,
    "queryType": "vector_search",
    "latency_ms": 12,
    "requestId": "req_123",
}

SYNC_RESPONSE = {
    "status": "completed",
    "message": "Memories synced successfully",
    "requestId": "req_sync",
    "inputFormat": "text",
    "result": {
        "factsExtracted": 2,
        "memoriesInserted": 2,
        "memoriesUpdated": 0,
        "memoriesSkipped": 0,
        "latency_ms": 40,
    },
}

BATCH_RESPONSE = {
    "processed": 1,
    "results": {"created": 1, "updated": 0, "deleted": 0, "failed": 0},
}

WEBHOOK = {
    "id": "wh_1",
    "url": "https://example.com/hook",
    "events": ["memory.created", "memory.deleted"],
    "enabled": True,
    "name": "Production Webhook",
    "createdAt": "2026-01-01T00:00:00Z",
}
