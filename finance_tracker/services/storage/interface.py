"""
Abstract Storage Interface

DESIGN DECISION: Persistence is a plain string key/value store.
Every collection (incomes, expenses, debts, ...) is one JSON array
stored under one key, read and replaced as a whole.

This allows us to:
1. Run against in-memory storage in tests and local development
2. Use a Google Sheets worksheet as a durable backend
3. Wrap any backend with per-user key partitioning without touching
   the code that reads and writes by bare key names
"""

from abc import ABC, abstractmethod
from typing import Optional

from finance_tracker.models.audit import AuditEvent


class KeyValueStorage(ABC):
    """
    Abstract string key/value store.

    Any storage implementation (memory, Google Sheets, ...) must
    implement these methods.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Read the value stored under `key`.

        Returns:
            The stored string, or None when the key was never written

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """
        Store `value` under `key`, replacing any previous value.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """
        Remove `key`.

        Returns:
            True if the key existed
        """
        pass

    @abstractmethod
    async def keys(self) -> list[str]:
        """All keys currently stored, in no particular order."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class CorruptDataError(StorageError):
    """A stored value could not be decoded as the expected collection."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
