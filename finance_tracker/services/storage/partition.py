"""
Per-User Storage Partitioning

DESIGN DECISION: Partitioning is a wrapper bound to one user at
construction time, passed explicitly to whatever persists data. Nothing
global is patched, so two sessions can hold two wrappers over the same
backend at once.

Every key except the exempt ones is stored as `{email}_{key}`. The
exempt keys (the shared user table and a third-party compatibility
cache) are read and written unchanged.

With no active session, `open_session_storage` hands back the raw
backend: keys are then NOT namespaced, and callers must not assume
they are.
"""

from typing import Iterable, Optional

import structlog

from finance_tracker.config import get_settings
from finance_tracker.models.records import UserSession
from finance_tracker.services.storage.interface import KeyValueStorage


logger = structlog.get_logger(__name__)


class UserPartitionedStorage(KeyValueStorage):
    """A view of `inner` that only sees one user's keys."""

    def __init__(
        self,
        inner: KeyValueStorage,
        user_email: str,
        exempt_keys: Optional[Iterable[str]] = None,
    ):
        if not user_email:
            raise ValueError("Partitioned storage needs a user email")
        self._inner = inner
        self._user_email = user_email
        if exempt_keys is None:
            exempt_keys = get_settings().app.exempt_keys_list
        self._exempt = frozenset(exempt_keys)

    @property
    def user_email(self) -> str:
        return self._user_email

    @property
    def prefix(self) -> str:
        return f"{self._user_email}_"

    def namespaced(self, key: str) -> str:
        """The key actually used in the wrapped backend."""
        if key in self._exempt:
            return key
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Optional[str]:
        return await self._inner.get(self.namespaced(key))

    async def set(self, key: str, value: str) -> None:
        await self._inner.set(self.namespaced(key), value)

    async def delete(self, key: str) -> bool:
        return await self._inner.delete(self.namespaced(key))

    async def keys(self) -> list[str]:
        """Bare names of this user's keys, plus the shared exempt keys."""
        visible = []
        for key in await self._inner.keys():
            if key in self._exempt:
                visible.append(key)
            elif key.startswith(self.prefix):
                visible.append(key[len(self.prefix):])
        return visible


def open_session_storage(
    backend: KeyValueStorage,
    session: Optional[UserSession],
    exempt_keys: Optional[Iterable[str]] = None,
) -> KeyValueStorage:
    """Partitioned view for an active session, the raw backend otherwise."""
    if session is None:
        logger.warning("storage_unpartitioned", reason="no active session")
        return backend
    return UserPartitionedStorage(backend, session.email, exempt_keys)
