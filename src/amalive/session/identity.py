"""Anonymous per-client session identity.

Attributes votes and follow-ups without an account. Best-effort only:
if the storage cannot be read or written, a transient id is handed out
for that call.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from amalive.core.errors import StorageError

if TYPE_CHECKING:
    from amalive.storage.base import KeyValueStorage

logger = logging.getLogger(__name__)

SESSION_KEY = "sessionId"


class SessionIdentityStore:
    """Generates and persists the durable anonymous session id."""

    def __init__(self, storage: KeyValueStorage) -> None:
        self._storage = storage
        self._cached: str | None = None

    async def get_or_create_session_id(self) -> str:
        """Return the session id, creating and persisting it on first use."""
        if self._cached is not None:
            return self._cached

        try:
            existing = await self._storage.get(SESSION_KEY)
        except StorageError as e:
            logger.warning("Session storage unreadable, using transient id: %s", e)
            return str(uuid.uuid4())

        if existing:
            self._cached = existing
            return existing

        session_id = str(uuid.uuid4())
        try:
            await self._storage.set(SESSION_KEY, session_id)
        except StorageError as e:
            logger.warning("Cannot persist session id, using transient id: %s", e)
            return session_id

        self._cached = session_id
        return session_id
