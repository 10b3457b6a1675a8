"""Base models and shared types for Orthanc request/response shapes."""

from __future__ import annotations

from typing import Self

from pydantic import BaseModel, ConfigDict, PrivateAttr
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base for all wire models.

    Fields use snake_case in Python and camelCase on the wire. Both names are
    accepted when validating.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, object]:
        """Serialize to the JSON body the service expects."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ApiRequest(ApiModel):
    """Base for request bodies; unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")


class RequestMetadata(BaseModel):
    """Per-call metadata extracted from response headers.

    Attributes:
        request_id: Upstream request id (X-Request-ID header).
        latency_ms: Latency reported by the service body, or 0.
        rate_limit_remaining: X-RateLimit-Remaining header, if present.
        rate_limit_reset: X-RateLimit-Reset header, if present.
    """

    request_id: str = ""
    latency_ms: float = 0
    rate_limit_remaining: int | None = None
    rate_limit_reset: int | None = None


class ApiResponse(ApiModel):
    """Base for response bodies.

    The metadata of the call that produced a response is attached after
    parsing and is not part of the serialized body.
    """

    _request_metadata: RequestMetadata | None = PrivateAttr(default=None)

    @property
    def request_metadata(self) -> RequestMetadata | None:
        return self._request_metadata

    def with_metadata(self, metadata: RequestMetadata) -> Self:
        self._request_metadata = metadata
        return self
