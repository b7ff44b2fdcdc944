"""Services package."""

from finance_tracker.services.storage import (
    AuditStorageInterface,
    CollectionRepository,
    ConnectionError,
    CorruptDataError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsKeyValueStorage,
    InMemoryAuditStorage,
    InMemoryKeyValueStorage,
    KeyValueStorage,
    NotFoundError,
    StorageError,
    StorageKeys,
    UserPartitionedStorage,
    open_session_storage,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "CollectionRepository",
    "ConnectionError",
    "CorruptDataError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsKeyValueStorage",
    "InMemoryAuditStorage",
    "InMemoryKeyValueStorage",
    "KeyValueStorage",
    "NotFoundError",
    "StorageError",
    "StorageKeys",
    "UserPartitionedStorage",
    "open_session_storage",
]
