"""Request and response models for the Orthanc memory service.

Query:
    - QueryOptions, DetailedQueryOptions: retrieval options
    - MemoryResponse, DetailedMemoryResponse: retrieval results
    - Memory: full memory record

Ingestion and editing:
    - SyncRequest, SyncOptions, SyncResponse: text/message ingestion
    - BatchRequest, BatchOperation, MemoryUpdates, BatchResponse: batched CRUD

Export, webhooks and health:
    - ExportOptions, ExportResponse
    - Webhook, WebhookCreateRequest, WebhookUpdateRequest, WebhookEvent
    - HealthResponse

Supporting types:
    - RequestMetadata: request id and rate-limit counters of a call
"""

from .base import ApiModel, ApiRequest, ApiResponse, RequestMetadata
from .batch import (
    BatchAction,
    BatchError,
    BatchOperation,
    BatchRequest,
    BatchResponse,
    BatchResults,
    MemoryUpdates,
)
from .export import ExportFormat, ExportOptions, ExportResponse
from .health import HealthChecks, HealthResponse, ServiceCheck
from .memory import (
    DateFilter,
    DetailedMemoryResponse,
    DetailedQueryOptions,
    Memory,
    MemoryQuery,
    MemoryResponse,
    Message,
    Pagination,
    QueryOptions,
    QueryRequest,
    QueryType,
    SourceType,
    TimeFilter,
)
from .sync import InputFormat, SyncOptions, SyncRequest, SyncResponse, SyncResult, SyncStatus
from .webhook import (
    ALL_EVENT_TYPES,
    Webhook,
    WebhookCreateRequest,
    WebhookEvent,
    WebhookEventData,
    WebhookEventType,
    WebhookUpdateRequest,
)

__all__ = [
    # Base types
    "ApiModel",
    "ApiRequest",
    "ApiResponse",
    "RequestMetadata",
    # Query
    "DateFilter",
    "DetailedMemoryResponse",
    "DetailedQueryOptions",
    "Memory",
    "MemoryQuery",
    "MemoryResponse",
    "Message",
    "Pagination",
    "QueryOptions",
    "QueryRequest",
    "QueryType",
    "SourceType",
    "TimeFilter",
    # Sync
    "InputFormat",
    "SyncOptions",
    "SyncRequest",
    "SyncResponse",
    "SyncResult",
    "SyncStatus",
    # Batch
    "BatchAction",
    "BatchError",
    "BatchOperation",
    "BatchRequest",
    "BatchResponse",
    "BatchResults",
    "MemoryUpdates",
    # Export
    "ExportFormat",
    "ExportOptions",
    "ExportResponse",
    # Webhooks
    "ALL_EVENT_TYPES",
    "Webhook",
    "WebhookCreateRequest",
    "WebhookEvent",
    "WebhookEventData",
    "WebhookEventType",
    "WebhookUpdateRequest",
    # Health
    "HealthChecks",
    "HealthResponse",
    "ServiceCheck",
]
