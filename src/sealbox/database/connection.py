"""SQLite connection and initialization utilities."""

import logging
import sqlite3
import threading
from pathlib import Path

from .schema import get_init_schema, get_drop_schema
from ..core.exceptions import StorageError

logger = logging.getLogger(__name__)

BUSY_TIMEOUT_SECONDS = 30.0


class DatabaseConnection:
    """Manage SQLite connections and schema init.

    Each thread gets its own connection in autocommit mode, so every
    statement is its own transaction. Conditional single-statement updates
    are therefore atomic across threads and processes sharing the file.
    """

    __slots__ = ("db_path", "_local", "_lock", "_initialized", "_connections")

    def __init__(self, db_path="./sealbox.db"):
        """Initialize connection state."""
        self.db_path = Path(db_path)
        self._local = threading.local()
        self._lock = threading.RLock()
        self._initialized = False
        self._connections = []

    def initialize(self):
        """Initialize schema if not already initialized."""
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return

            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)

                conn = self._get_connection()
                conn.execute("PRAGMA journal_mode = WAL")

                for statement in get_init_schema():
                    conn.execute(statement)

                self._initialized = True
                logger.debug("Database initialized at %s", self.db_path)

            except sqlite3.Error as e:
                raise StorageError(f"Failed to initialize database: {e}")

    def _get_connection(self):
        """Get or create a thread-local SQLite connection."""
        if not hasattr(self._local, "connection") or self._local.connection is None:
            conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
                isolation_level=None,
                timeout=BUSY_TIMEOUT_SECONDS,
            )
            conn.row_factory = sqlite3.Row
            self._local.connection = conn
            with self._lock:
                self._connections.append(conn)

        return self._local.connection

    def get_cursor_context(self):
        """Return a context manager for a SQLite cursor."""
        return CursorContext(self._get_connection())

    def get_transaction_context(self):
        """Return a transaction context manager (BEGIN IMMEDIATE/COMMIT/ROLLBACK)."""
        return TransactionContext(self._get_connection())

    def execute(self, query, params=None):
        """Execute a single SQL statement and return the number of affected rows."""
        with self.get_cursor_context() as cursor:
            if params:
                cursor.execute(query, params)
            else:
                cursor.execute(query)
            return cursor.rowcount

    def fetch_one(self, query, params=None):
        """Fetch a single row as a dict or None."""
        rows = self.fetch_all(query, params)
        return rows[0] if rows else None

    def fetch_all(self, query, params=None):
        """Fetch all rows as a list of dicts.

        Rows are drained before the cursor closes, which also completes
        ``UPDATE ... RETURNING`` statements.
        """
        with self.get_cursor_context() as cursor:
            if params:
                cursor.execute(query, params)
            else:
                cursor.execute(query)

            rows = cursor.fetchall()
            return [dict(row) for row in rows]

    def get_version(self):
        """Return current schema version number."""
        try:
            result = self.fetch_one("SELECT MAX(version) as version FROM schema_version")
            return result["version"] if result and result["version"] else 0
        except sqlite3.Error:
            return 0

    def reset(self):
        """Drop and recreate every table. Test helper."""
        conn = self._get_connection()
        for statement in get_drop_schema():
            conn.execute(statement)
        self._initialized = False
        self.initialize()

    def close(self):
        """Close every connection opened through this object."""
        with self._lock:
            connections, self._connections = self._connections, []
        for conn in connections:
            try:
                conn.close()
            except sqlite3.ProgrammingError:
                # owned by another, already finished thread
                pass
        self._local = threading.local()


class CursorContext:
    """Context manager for SQLite cursor."""

    __slots__ = ("connection", "cursor")

    def __init__(self, connection):
        """Initialize with a SQLite connection."""
        self.connection = connection
        self.cursor = None

    def __enter__(self):
        """Create and return a cursor."""
        self.cursor = self.connection.cursor()
        return self.cursor

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Close the cursor."""
        if self.cursor:
            self.cursor.close()


class TransactionContext:
    """Context manager for write transactions (BEGIN IMMEDIATE/COMMIT/ROLLBACK)."""

    __slots__ = ("connection", "cursor")

    def __init__(self, connection):
        """Initialize with a SQLite connection."""
        self.connection = connection
        self.cursor = None

    def __enter__(self):
        """Begin a transaction and return a cursor."""
        self.cursor = self.connection.cursor()
        self.cursor.execute("BEGIN IMMEDIATE")
        return self.cursor

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Commit on success, rollback on error, then close cursor."""
        try:
            if exc_type is None:
                self.cursor.execute("COMMIT")
            else:
                self.cursor.execute("ROLLBACK")
        finally:
            if self.cursor:
                self.cursor.close()
