"""SQLite schema definitions for SealBox."""

# SQL schema definitions
SCHEMA_VERSION = 1

CREATE_TABLES = [
    # Shares table - one row per encrypted artifact. Never holds a key or a password hash:
    # key_fingerprint proves possession, the password verifier travels in a caller-held token
    """
    CREATE TABLE IF NOT EXISTS shares (
        id TEXT PRIMARY KEY,
        owner_id TEXT NOT NULL,
        type TEXT NOT NULL CHECK (type IN ('text', 'file')),
        encrypted_data BLOB,
        file_path TEXT,
        file_name TEXT,
        file_mime TEXT,
        file_size INTEGER,
        iv TEXT NOT NULL,
        auth_tag TEXT NOT NULL,
        key_fingerprint TEXT NOT NULL,
        has_password INTEGER NOT NULL DEFAULT 0,
        max_views INTEGER,
        view_count INTEGER NOT NULL DEFAULT 0,
        is_consumed INTEGER NOT NULL DEFAULT 0,
        expires_at INTEGER,
        created_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now'))
    )
    """,
    # Drop-box requests - token is the public handle, id stays internal
    """
    CREATE TABLE IF NOT EXISTS drop_requests (
        id TEXT PRIMARY KEY,
        token TEXT NOT NULL UNIQUE,
        owner_id TEXT NOT NULL,
        is_consumed INTEGER NOT NULL DEFAULT 0,
        expires_at INTEGER NOT NULL,
        created_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now'))
    )
    """,
    # Sessions - TTL map for the caller-identity layer, purged by the sweeper
    """
    CREATE TABLE IF NOT EXISTS sessions (
        session_id TEXT PRIMARY KEY,
        owner_id TEXT NOT NULL,
        expires_at INTEGER NOT NULL,
        created_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now'))
    )
    """,
    # Schema version table
    """
    CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY,
        applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
]

# Index definitions for optimization
CREATE_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_shares_owner_id ON shares(owner_id, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_shares_expires_at ON shares(expires_at)",
    "CREATE INDEX IF NOT EXISTS idx_shares_is_consumed ON shares(is_consumed)",
    "CREATE INDEX IF NOT EXISTS idx_drop_requests_owner_id ON drop_requests(owner_id)",
    "CREATE INDEX IF NOT EXISTS idx_drop_requests_expires_at ON drop_requests(expires_at)",
    "CREATE INDEX IF NOT EXISTS idx_sessions_expires_at ON sessions(expires_at)",
]


def get_init_schema():
    """
    Get complete schema initialization SQL

    Returns:
        List of SQL statements to execute
    """
    statements = []
    statements.extend(CREATE_TABLES)
    statements.extend(CREATE_INDEXES)
    statements.append(
        f"INSERT OR IGNORE INTO schema_version (version) VALUES ({SCHEMA_VERSION})"
    )
    return statements


def get_drop_schema():
    """
    Get SQL statements to drop all tables for testing

    Returns:
        List of DROP TABLE statements
    """
    return [
        "DROP TABLE IF EXISTS shares",
        "DROP TABLE IF EXISTS drop_requests",
        "DROP TABLE IF EXISTS sessions",
        "DROP TABLE IF EXISTS schema_version",
    ]
