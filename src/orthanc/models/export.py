"""Export models for GET /api/memories/export."""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from .base import ApiRequest, ApiResponse
from .memory import Memory

ExportFormat = Literal["json", "csv"]


class ExportOptions(ApiRequest):
    """Filters and paging for an export.

    Sent as query parameters rather than a JSON body.
    """

    user_id: str | None = None
    limit: int | None = Field(default=None, ge=1)
    offset: int | None = Field(default=None, ge=0)
    format: ExportFormat | None = None
    include_embeddings: bool | None = None

    def to_params(self) -> dict[str, str]:
        """Build query parameters, omitting unset and falsy values."""
        params: dict[str, str] = {}
        if self.user_id:
            params["userId"] = self.user_id
        if self.limit:
            params["limit"] = str(self.limit)
        if self.offset:
            params["offset"] = str(self.offset)
        if self.format:
            params["format"] = self.format
        if self.include_embeddings:
            params["includeEmbeddings"] = "true"
        return params


class ExportResponse(ApiResponse):
    """One page of exported memories."""

    user_id: str | None = None
    exported_at: str
    total: int
    count: int
    has_more: bool = False
    memories: list[Memory] = Field(default_factory=list)
