"""
Storage Services Package

A string key/value interface, its backends (memory, Google Sheets), the
per-user partitioning wrapper, and the typed collection repository built
on top of them.
"""

from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    CorruptDataError,
    KeyValueStorage,
    NotFoundError,
    StorageError,
)
from finance_tracker.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryKeyValueStorage,
)
from finance_tracker.services.storage.partition import (
    UserPartitionedStorage,
    open_session_storage,
)
from finance_tracker.services.storage.repository import (
    CollectionRepository,
    StorageKeys,
)
from finance_tracker.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsKeyValueStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "KeyValueStorage",
    # Exceptions
    "ConnectionError",
    "CorruptDataError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryKeyValueStorage",
    # Partitioning
    "UserPartitionedStorage",
    "open_session_storage",
    # Collections
    "CollectionRepository",
    "StorageKeys",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsKeyValueStorage",
]
