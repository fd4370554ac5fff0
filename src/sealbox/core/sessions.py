"""Persisted session TTL map for the caller-identity layer.

SealBox does not authenticate anyone. The surrounding service resolves a
session id to an opaque owner id through this store; expired rows are purged
actively by the cleanup sweeper instead of lingering until looked up.
"""

import secrets
import time
from typing import Callable, Optional

from ..database.connection import DatabaseConnection
from ..database.models import SessionModel

DEFAULT_TTL_SECONDS = 24 * 60 * 60


class SessionStore:
    def __init__(self, db_connection: DatabaseConnection, clock: Optional[Callable[[], int]] = None):
        self.session_model = SessionModel(db_connection)
        self._clock = clock or (lambda: int(time.time()))

    def create(self, owner_id: str, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> str:
        """Open a session for ``owner_id`` and return its id."""
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        now = int(self._clock())
        session_id = secrets.token_hex(32)
        self.session_model.create(session_id, owner_id, now + ttl_seconds, now)
        return session_id

    def get_owner(self, session_id: str) -> Optional[str]:
        """Owner id for a live session, or None."""
        row = self.session_model.get_active(session_id, int(self._clock()))
        return row["owner_id"] if row else None

    def delete(self, session_id: str) -> bool:
        return self.session_model.delete(session_id)

    def cleanup_expired(self) -> int:
        return self.session_model.delete_expired(int(self._clock()))
