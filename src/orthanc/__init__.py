"""Orthanc: client library for the agent memory service.

Query, ingest, edit and export memories over HTTP with retries, response
caching and typed errors, or develop offline against an in-process store.

Quick Start:
    from orthanc import OrthancClient

    async with OrthancClient(api_key="sk-...") as client:
        await client.sync_messages(
            "user_123",
            [{"role": "user", "content": "I'm allergic to peanuts"}],
        )
        result = await client.query("user_123", "What am I allergic to?")

Offline:
    from orthanc import LocalClient

    client = LocalClient()  # same operations, no network
"""

__version__ = "0.1.0"

# Clients
from .cache import QueryCache
from .client import OrthancClient

# Configuration
from .config import CacheConfig, Settings, settings

# Exceptions
from .exceptions import ErrorKind, OrthancError, classify_error, is_retryable

# Offline substitute
from .local import LocalClient, LocalMemoryStore

# Logging
from .logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)

# Models
from .models import (
    BatchOperation,
    BatchRequest,
    BatchResponse,
    ExportOptions,
    ExportResponse,
    HealthResponse,
    Memory,
    MemoryResponse,
    QueryOptions,
    RequestMetadata,
    SyncOptions,
    SyncRequest,
    SyncResponse,
    Webhook,
    WebhookCreateRequest,
)

__all__ = [
    # Version
    "__version__",
    # Clients
    "OrthancClient",
    "LocalClient",
    "LocalMemoryStore",
    "QueryCache",
    # Configuration
    "CacheConfig",
    "Settings",
    "settings",
    # Exceptions
    "ErrorKind",
    "OrthancError",
    "classify_error",
    "is_retryable",
    # Logging
    "configure_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    "unbind_context",
    # Models
    "BatchOperation",
    "BatchRequest",
    "BatchResponse",
    "ExportOptions",
    "ExportResponse",
    "HealthResponse",
    "Memory",
    "MemoryResponse",
    "QueryOptions",
    "RequestMetadata",
    "SyncOptions",
    "SyncRequest",
    "SyncResponse",
    "Webhook",
    "WebhookCreateRequest",
]
