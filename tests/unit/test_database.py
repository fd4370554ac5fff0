"""Unit tests for database connection and ORM-style model helpers."""

import sqlite3
import threading

import pytest

import sealbox.database.connection as connection_module
from sealbox.core.exceptions import StorageError
from sealbox.core.models import DropRequest, Share, ShareType
from sealbox.database.connection import DatabaseConnection
from sealbox.database.models import DropRequestModel, SessionModel, ShareModel

NOW = 1_800_000_000


# --- Fixtures ---


@pytest.fixture
def db_conn(tmp_path):
    """Create an initialized DatabaseConnection backed by a temporary SQLite file."""
    conn = DatabaseConnection(str(tmp_path / "db.sqlite"))
    conn.initialize()
    try:
        yield conn
    finally:
        conn.close()


def make_share(share_id="s1", **overrides):
    fields = dict(
        share_id=share_id,
        owner_id="alice",
        share_type=ShareType.TEXT,
        encrypted_data=b"ct",
        iv="iv",
        auth_tag="tag",
        key_fingerprint="fp",
        created_at=NOW,
    )
    fields.update(overrides)
    return Share(**fields)


# --- DatabaseConnection tests ---


def test_initialize_creates_schema_once(db_conn):
    db_conn.initialize()
    assert db_conn.get_version() >= 1
    tables = {r["name"] for r in db_conn.fetch_all("SELECT name FROM sqlite_master WHERE type = 'table'")}
    assert {"shares", "drop_requests", "sessions", "schema_version"} <= tables


def test_initialize_fresh_connection_completes(tmp_path):
    """First-time initialization must not block on its own lock."""
    conn = DatabaseConnection(str(tmp_path / "fresh.sqlite"))
    worker = threading.Thread(target=conn.initialize, daemon=True)
    worker.start()
    worker.join(10)
    assert not worker.is_alive()
    try:
        assert conn.get_version() >= 1
    finally:
        conn.close()


def test_shares_table_has_no_key_or_password_columns(db_conn):
    columns = {r["name"] for r in db_conn.fetch_all("PRAGMA table_info(shares)")}
    assert "key_fingerprint" in columns
    assert not {"encryption_key", "password_hash", "password_token"} & columns


def test_initialize_wraps_sqlite_errors(tmp_path, monkeypatch):
    monkeypatch.setattr(connection_module, "get_init_schema", lambda: ["NOT VALID SQL"])
    conn = DatabaseConnection(str(tmp_path / "bad.sqlite"))
    try:
        with pytest.raises(StorageError, match="Failed to initialize database"):
            conn.initialize()
    finally:
        conn.close()


def test_execute_returns_rowcount(db_conn):
    db_conn.execute(
        "INSERT INTO sessions (session_id, owner_id, expires_at, created_at) VALUES (?, ?, ?, ?)",
        ("a", "o", NOW, NOW),
    )
    assert db_conn.execute("DELETE FROM sessions WHERE owner_id = ?", ("o",)) == 1
    assert db_conn.execute("DELETE FROM sessions WHERE owner_id = ?", ("o",)) == 0


def test_transaction_rolls_back_on_error(db_conn):
    with pytest.raises(RuntimeError):
        with db_conn.get_transaction_context() as cursor:
            cursor.execute(
                "INSERT INTO sessions (session_id, owner_id, expires_at, created_at) VALUES ('x', 'o', 1, 1)"
            )
            raise RuntimeError("abort")
    assert db_conn.fetch_one("SELECT * FROM sessions WHERE session_id = 'x'") is None


def test_reset_drops_data(db_conn):
    ShareModel(db_conn).create(make_share())
    db_conn.reset()
    assert db_conn.fetch_all("SELECT * FROM shares") == []


def test_close_allows_reconnect(db_conn):
    db_conn.close()
    assert db_conn.fetch_one("SELECT 1 AS one")["one"] == 1


# --- ShareModel tests ---


def test_share_create_and_get(db_conn):
    model = ShareModel(db_conn)
    model.create(make_share(max_views=2, expires_at=NOW + 60))
    share = model.get("s1")
    assert share.share_type is ShareType.TEXT
    assert share.encrypted_data == b"ct"
    assert share.max_views == 2
    assert share.view_count == 0
    assert share.is_consumed is False
    assert share.has_password is False


def test_get_servable_respects_expiry_and_consumption(db_conn):
    model = ShareModel(db_conn)
    model.create(make_share("live", expires_at=NOW + 10))
    model.create(make_share("expired", expires_at=NOW))
    model.create(make_share("forever"))
    assert model.get_servable("live", NOW) is not None
    assert model.get_servable("expired", NOW) is None
    assert model.get_servable("forever", NOW) is not None
    db_conn.execute("UPDATE shares SET is_consumed = 1 WHERE id = 'forever'")
    assert model.get_servable("forever", NOW) is None


def test_get_metadata_excludes_ciphertext(db_conn):
    model = ShareModel(db_conn)
    model.create(make_share())
    meta = model.get_metadata("s1")
    assert meta.share_id == "s1"
    assert not hasattr(meta, "encrypted_data")
    assert model.get_metadata("missing") is None


def test_consume_view_flips_at_limit(db_conn):
    model = ShareModel(db_conn)
    model.create(make_share(max_views=2))
    assert model.consume_view("s1") == (1, False)
    assert model.consume_view("s1") == (2, True)
    assert model.consume_view("s1") is None
    assert model.get("s1").view_count == 2


def test_count_view_unlimited(db_conn):
    model = ShareModel(db_conn)
    model.create(make_share())
    assert model.count_view("s1") == 1
    assert model.count_view("s1") == 2
    assert model.get("s1").is_consumed is False
    assert model.count_view("missing") is None


def test_list_by_owner_newest_first(db_conn):
    model = ShareModel(db_conn)
    model.create(make_share("old", created_at=NOW - 10))
    model.create(make_share("new", created_at=NOW))
    model.create(make_share("other", owner_id="bob"))
    assert [m.share_id for m in model.list_by_owner("alice")] == ["new", "old"]
    assert [m.share_id for m in model.list_by_owner("alice", limit=1)] == ["new"]


def test_unservable_selection_and_delete(db_conn):
    model = ShareModel(db_conn)
    model.create(make_share("live", expires_at=NOW + 10))
    model.create(make_share("expired", expires_at=NOW - 1))
    model.create(make_share("consumed", max_views=1))
    model.consume_view("consumed")
    ids = sorted(row["id"] for row in model.list_unservable(NOW))
    assert ids == ["consumed", "expired"]
    # "live" is servable so it survives even if passed in
    assert model.delete_unservable(ids + ["live"], NOW) == 2
    assert model.get("live") is not None
    assert model.delete_unservable([], NOW) == 0


def test_share_delete(db_conn):
    model = ShareModel(db_conn)
    model.create(make_share())
    assert model.delete("s1") is True
    assert model.delete("s1") is False


def test_duplicate_share_id_raises(db_conn):
    model = ShareModel(db_conn)
    model.create(make_share())
    with pytest.raises(sqlite3.IntegrityError):
        model.create(make_share())


# --- DropRequestModel tests ---


def make_request(request_id="r1", token="tok1", expires_at=NOW + 60, **kw):
    return DropRequest(request_id=request_id, token=token, owner_id="alice", expires_at=expires_at, created_at=NOW, **kw)


def test_request_claim_is_single_use(db_conn):
    model = DropRequestModel(db_conn)
    model.create(make_request())
    assert model.get_servable("tok1", NOW).request_id == "r1"
    claimed = model.claim("tok1", NOW)
    assert claimed.is_consumed is True
    assert model.claim("tok1", NOW) is None
    assert model.get_servable("tok1", NOW) is None
    model.release("r1")
    assert model.get_servable("tok1", NOW) is not None


def test_request_claim_expired(db_conn):
    model = DropRequestModel(db_conn)
    model.create(make_request(expires_at=NOW))
    assert model.claim("tok1", NOW) is None


def test_request_delete_unservable(db_conn):
    model = DropRequestModel(db_conn)
    model.create(make_request("r1", "t1"))
    model.create(make_request("r2", "t2", expires_at=NOW - 1))
    model.create(make_request("r3", "t3", is_consumed=True))
    assert model.delete_unservable(NOW) == 2
    assert [r.request_id for r in model.list_by_owner("alice")] == ["r1"]


# --- SessionModel tests ---


def test_session_model_lifecycle(db_conn):
    model = SessionModel(db_conn)
    model.create("sess", "alice", NOW + 5, NOW)
    assert model.get_active("sess", NOW)["owner_id"] == "alice"
    assert model.get_active("sess", NOW + 5) is None
    assert model.delete_expired(NOW + 5) == 1
    assert model.delete("sess") is False
