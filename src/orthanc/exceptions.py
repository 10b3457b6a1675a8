"""Orthanc error taxonomy.

Every failure surfaced by the client is an ``OrthancError``. The ``kind``
attribute discriminates between error classes, so callers branch on
``error.kind`` instead of catching a tree of subclasses.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import RequestMetadata


class ErrorKind(str, Enum):
    """Classification of a failed call."""

    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    USAGE_LIMIT = "usage_limit"
    SERVER = "server"
    NETWORK = "network"
    GENERIC = "generic"
    CONFIGURATION = "configuration"


# (code, status) used when the caller does not supply them
_DEFAULTS: dict[ErrorKind, tuple[str, int]] = {
    ErrorKind.VALIDATION: ("VALIDATION_ERROR", 400),
    ErrorKind.AUTHENTICATION: ("AUTHENTICATION_ERROR", 401),
    ErrorKind.AUTHORIZATION: ("AUTHORIZATION_ERROR", 403),
    ErrorKind.NOT_FOUND: ("NOT_FOUND", 404),
    ErrorKind.TIMEOUT: ("TIMEOUT", 408),
    ErrorKind.RATE_LIMIT: ("RATE_LIMIT_ERROR", 429),
    ErrorKind.USAGE_LIMIT: ("USAGE_LIMIT_ERROR", 429),
    ErrorKind.SERVER: ("SERVER_ERROR", 500),
    ErrorKind.NETWORK: ("NETWORK_ERROR", 0),
    ErrorKind.GENERIC: ("UNKNOWN", 0),
    ErrorKind.CONFIGURATION: ("CONFIGURATION_ERROR", 0),
}

DEFAULT_RETRY_AFTER_SECONDS = 60
USAGE_LIMIT_CODE = "USAGE_LIMIT_EXCEEDED"
SERVER_ERROR_STATUSES = frozenset({500, 502, 503, 504})


class OrthancError(Exception):
    """Base exception for all Orthanc client errors.

    Attributes:
        kind: Error classification.
        message: Human-readable error description.
        code: Machine-readable error code.
        status: HTTP-style status number (0 when no response was received).
        request_id: Upstream request identifier, when the server sent one.
        field: Offending field for validation errors.
        retry_after: Seconds to wait before retrying, for rate-limit errors.
        metadata: Request id and rate-limit counters of the failed response,
            when one was received.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        code: str | None = None,
        status: int | None = None,
        request_id: str | None = None,
        field: str | None = None,
        retry_after: int | None = None,
        metadata: RequestMetadata | None = None,
    ) -> None:
        default_code, default_status = _DEFAULTS[kind]
        self.kind = kind
        self.message = message
        self.code = code or default_code
        self.status = default_status if status is None else status
        self.request_id = request_id
        self.field = field
        self.retry_after = retry_after
        self.metadata = metadata
        super().__init__(message)

    def __repr__(self) -> str:
        return (
            f"OrthancError(kind={self.kind.value!r}, status={self.status}, "
            f"code={self.code!r}, message={self.message!r})"
        )

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        error: dict[str, object] = {
            "code": self.code,
            "kind": self.kind.value,
            "status": self.status,
            "message": self.message,
        }
        if self.request_id is not None:
            error["request_id"] = self.request_id
        if self.field is not None:
            error["field"] = self.field
        if self.retry_after is not None:
            error["retry_after"] = self.retry_after
        if self.metadata is not None:
            error["metadata"] = self.metadata.model_dump(exclude_none=True)
        return {"error": error}

    @classmethod
    def validation(
        cls, message: str, field: str | None = None, request_id: str | None = None
    ) -> OrthancError:
        return cls(ErrorKind.VALIDATION, message, field=field, request_id=request_id)

    @classmethod
    def not_found(cls, message: str, request_id: str | None = None) -> OrthancError:
        return cls(ErrorKind.NOT_FOUND, message, request_id=request_id)

    @classmethod
    def timeout(cls, message: str, request_id: str | None = None) -> OrthancError:
        return cls(ErrorKind.TIMEOUT, message, request_id=request_id)

    @classmethod
    def network(cls, message: str) -> OrthancError:
        return cls(ErrorKind.NETWORK, message)

    @classmethod
    def rate_limit(
        cls,
        message: str,
        retry_after: int = DEFAULT_RETRY_AFTER_SECONDS,
        request_id: str | None = None,
    ) -> OrthancError:
        return cls(
            ErrorKind.RATE_LIMIT, message, retry_after=retry_after, request_id=request_id
        )

    @classmethod
    def configuration(cls, message: str) -> OrthancError:
        return cls(ErrorKind.CONFIGURATION, message)


def classify_error(
    status: int,
    body: Mapping[str, Any] | None,
    request_id: str | None = None,
    retry_after: int | None = None,
) -> OrthancError:
    """Map an HTTP error response to a classified error.

    Args:
        status: HTTP status code of the response.
        body: Parsed error body; ``error``, ``message`` and ``code`` keys are used.
        request_id: Upstream request id from the response headers.
        retry_after: Retry-After seconds reported by the server, if any.

    Returns:
        Exactly one OrthancError whose kind is derived from the status.
    """
    body = body or {}
    message = body.get("error") or body.get("message") or "Unknown error"
    if not isinstance(message, str):
        message = str(message)
    code = body.get("code") or "UNKNOWN"

    if status == 400:
        field = body.get("field")
        return OrthancError.validation(
            message, field=field if isinstance(field, str) else None, request_id=request_id
        )
    if status == 401:
        return OrthancError(ErrorKind.AUTHENTICATION, message, request_id=request_id)
    if status == 403:
        return OrthancError(ErrorKind.AUTHORIZATION, message, request_id=request_id)
    if status == 404:
        return OrthancError.not_found(message, request_id=request_id)
    if status == 408:
        return OrthancError.timeout(message, request_id=request_id)
    if status == 429:
        if code == USAGE_LIMIT_CODE:
            return OrthancError(ErrorKind.USAGE_LIMIT, message, request_id=request_id)
        return OrthancError.rate_limit(
            message,
            retry_after=retry_after if retry_after is not None else DEFAULT_RETRY_AFTER_SECONDS,
            request_id=request_id,
        )
    if status in SERVER_ERROR_STATUSES:
        return OrthancError(ErrorKind.SERVER, message, status=status, request_id=request_id)
    return OrthancError(
        ErrorKind.GENERIC, message, code=str(code), status=status, request_id=request_id
    )


def is_retryable(error: OrthancError) -> bool:
    """Return True if a failed call may succeed when attempted again."""
    if error.kind in (ErrorKind.RATE_LIMIT, ErrorKind.TIMEOUT, ErrorKind.NETWORK):
        return True
    return error.kind is ErrorKind.SERVER and error.status >= 500


__all__ = [
    "DEFAULT_RETRY_AFTER_SECONDS",
    "ErrorKind",
    "OrthancError",
    "USAGE_LIMIT_CODE",
    "classify_error",
    "is_retryable",
]
