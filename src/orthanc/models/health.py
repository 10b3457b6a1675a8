"""Service health snapshot returned by GET /api/health."""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from .base import ApiModel, ApiResponse


class ServiceCheck(ApiModel):
    status: Literal["up", "down", "warning"]
    latency_ms: float | None = Field(default=None, alias="latency_ms")
    heap_used: str | None = None


class HealthChecks(ApiModel):
    database: ServiceCheck
    memory: ServiceCheck
    environment: ServiceCheck


class HealthResponse(ApiResponse):
    status: Literal["healthy", "degraded", "unhealthy"]
    timestamp: str
    version: str
    uptime_seconds: float = Field(alias="uptime_seconds")
    latency_ms: float = Field(default=0, alias="latency_ms")
    checks: HealthChecks

    @property
    def is_healthy(self) -> bool:
        return self.status == "healthy"
