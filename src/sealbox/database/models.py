"""ORM-style helpers for database operations."""

from .connection import DatabaseConnection
from ..core.models import share_from_row, metadata_from_row, request_from_row


SERVABLE_SHARE = "is_consumed = 0 AND (expires_at IS NULL OR expires_at > ?)"
UNSERVABLE_SHARE = "(expires_at IS NOT NULL AND expires_at <= ?) OR is_consumed = 1"

METADATA_COLUMNS = (
    "id, owner_id, type, has_password, max_views, view_count, is_consumed, "
    "expires_at, created_at, file_name, file_mime, file_size"
)


class BaseModel:
    """Base class for DB models."""

    __slots__ = ("db",)

    def __init__(self, db: DatabaseConnection):
        """Initialize with a DatabaseConnection."""
        self.db = db


class ShareModel(BaseModel):
    """DB model for shares."""

    def create(self, share):
        """Insert a share record."""
        query = """
            INSERT INTO shares (
                id, owner_id, type, encrypted_data, file_path, file_name, file_mime,
                file_size, iv, auth_tag, key_fingerprint, has_password, max_views,
                expires_at, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """

        params = (
            share.share_id,
            share.owner_id,
            share.share_type.value,
            share.encrypted_data,
            share.file_path,
            share.file_name,
            share.file_mime,
            share.file_size,
            share.iv,
            share.auth_tag,
            share.key_fingerprint,
            1 if share.has_password else 0,
            share.max_views,
            share.expires_at,
            share.created_at,
        )

        self.db.execute(query, params)
        return share.share_id

    def get(self, share_id):
        """Get a full Share by ID regardless of state, or None."""
        row = self.db.fetch_one("SELECT * FROM shares WHERE id = ?", (share_id,))
        return share_from_row(row) if row else None

    def get_servable(self, share_id, now):
        """Get a full Share only if it is unconsumed and unexpired."""
        query = f"SELECT * FROM shares WHERE id = ? AND {SERVABLE_SHARE}"
        row = self.db.fetch_one(query, (share_id, now))
        return share_from_row(row) if row else None

    def get_metadata(self, share_id):
        """Get ShareMetadata by ID without reading ciphertext."""
        query = f"SELECT {METADATA_COLUMNS} FROM shares WHERE id = ?"
        row = self.db.fetch_one(query, (share_id,))
        return metadata_from_row(row) if row else None

    def list_by_owner(self, owner_id, limit=50):
        """List share metadata for an owner, newest first."""
        query = f"""
            SELECT {METADATA_COLUMNS} FROM shares
            WHERE owner_id = ?
            ORDER BY created_at DESC, rowid DESC
            LIMIT ?
        """
        rows = self.db.fetch_all(query, (owner_id, int(limit)))
        return [metadata_from_row(row) for row in rows]

    def consume_view(self, share_id):
        """
        Count one view of a limited share as a single conditional update.

        Returns the updated (view_count, is_consumed) or None when the row
        was already consumed (or gone) at the time of the update.
        """
        query = """
            UPDATE shares
            SET view_count = view_count + 1,
                is_consumed = CASE WHEN view_count + 1 >= max_views THEN 1 ELSE 0 END
            WHERE id = ? AND is_consumed = 0
            RETURNING view_count, is_consumed
        """
        row = self.db.fetch_one(query, (share_id,))
        if not row:
            return None
        return row["view_count"], bool(row["is_consumed"])

    def count_view(self, share_id):
        """Increment the counter of an unlimited share; returns the new count or None."""
        query = """
            UPDATE shares SET view_count = view_count + 1
            WHERE id = ?
            RETURNING view_count
        """
        row = self.db.fetch_one(query, (share_id,))
        return row["view_count"] if row else None

    def delete(self, share_id):
        """Delete share by ID; True if a row was removed."""
        return self.db.execute("DELETE FROM shares WHERE id = ?", (share_id,)) > 0

    def list_unservable(self, now):
        """Return (id, file_path) rows for expired or consumed shares."""
        query = f"SELECT id, file_path FROM shares WHERE {UNSERVABLE_SHARE}"
        return self.db.fetch_all(query, (now,))

    def delete_unservable(self, share_ids, now):
        """Delete the given ids, re-checking that each is still unservable."""
        if not share_ids:
            return 0
        removed = 0
        with self.db.get_transaction_context() as cursor:
            for share_id in share_ids:
                cursor.execute(
                    f"DELETE FROM shares WHERE id = ? AND ({UNSERVABLE_SHARE})",
                    (share_id, now),
                )
                removed += cursor.rowcount
        return removed


class DropRequestModel(BaseModel):
    """DB model for drop-box requests."""

    def create(self, request):
        query = """
            INSERT INTO drop_requests (id, token, owner_id, is_consumed, expires_at, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """
        params = (
            request.request_id,
            request.token,
            request.owner_id,
            1 if request.is_consumed else 0,
            request.expires_at,
            request.created_at,
        )
        self.db.execute(query, params)
        return request.request_id

    def get_servable(self, token, now):
        query = """
            SELECT * FROM drop_requests
            WHERE token = ? AND is_consumed = 0 AND expires_at > ?
        """
        row = self.db.fetch_one(query, (token, now))
        return request_from_row(row) if row else None

    def claim(self, token, now):
        """Atomically mark a servable request consumed; returns it or None."""
        query = """
            UPDATE drop_requests SET is_consumed = 1
            WHERE token = ? AND is_consumed = 0 AND expires_at > ?
            RETURNING *
        """
        row = self.db.fetch_one(query, (token, now))
        return request_from_row(row) if row else None

    def release(self, request_id):
        """Undo a claim whose fulfilment failed."""
        self.db.execute("UPDATE drop_requests SET is_consumed = 0 WHERE id = ?", (request_id,))

    def list_by_owner(self, owner_id):
        query = "SELECT * FROM drop_requests WHERE owner_id = ? ORDER BY created_at DESC"
        return [request_from_row(row) for row in self.db.fetch_all(query, (owner_id,))]

    def delete_unservable(self, now):
        """Delete expired or consumed requests; returns the count removed."""
        query = "DELETE FROM drop_requests WHERE expires_at <= ? OR is_consumed = 1"
        return self.db.execute(query, (now,))


class SessionModel(BaseModel):
    """DB model for sessions."""

    def create(self, session_id, owner_id, expires_at, created_at):
        query = """
            INSERT INTO sessions (session_id, owner_id, expires_at, created_at)
            VALUES (?, ?, ?, ?)
        """
        self.db.execute(query, (session_id, owner_id, expires_at, created_at))
        return session_id

    def get_active(self, session_id, now):
        query = "SELECT * FROM sessions WHERE session_id = ? AND expires_at > ?"
        return self.db.fetch_one(query, (session_id, now))

    def delete(self, session_id):
        return self.db.execute("DELETE FROM sessions WHERE session_id = ?", (session_id,)) > 0

    def delete_expired(self, now):
        return self.db.execute("DELETE FROM sessions WHERE expires_at <= ?", (now,))
