"""Integration tests: concurrent viewers against one SQLite file."""

import threading

import pytest

from sealbox.core.exceptions import AlreadyConsumedError, NotFoundOrExpiredError
from sealbox.core.share_store import ShareStore
from sealbox.core.storage import BlobStore
from sealbox.database.connection import DatabaseConnection

VIEWERS = 8


@pytest.fixture
def store(tmp_path):
    conn = DatabaseConnection(str(tmp_path / "db.sqlite"))
    conn.initialize()
    yield ShareStore(conn, BlobStore(tmp_path / "uploads"), "integration-secret")
    conn.close()


def _race(store, share_id, key):
    """Fire VIEWERS simultaneous views; return (successes, failures)."""
    barrier = threading.Barrier(VIEWERS)
    lock = threading.Lock()
    successes, failures = [], []

    def viewer():
        barrier.wait()
        try:
            result = store.view(share_id, key)
        except (AlreadyConsumedError, NotFoundOrExpiredError) as e:
            with lock:
                failures.append(e)
        else:
            with lock:
                successes.append(result)

    threads = [threading.Thread(target=viewer) for _ in range(VIEWERS)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(30)
    return successes, failures


def test_one_time_share_released_exactly_once(store):
    created = store.create_text_share("alice", "only once", max_views=1)

    successes, failures = _race(store, created.share_id, created.key)

    assert len(successes) == 1
    assert len(failures) == VIEWERS - 1
    assert all(isinstance(e, AlreadyConsumedError) for e in failures)
    assert successes[0].text == "only once"
    assert successes[0].consumed is True
    meta = store.get_metadata(created.share_id)
    assert meta.view_count == 1
    assert meta.is_consumed is True


def test_limited_share_never_over_released(store):
    created = store.create_text_share("alice", "three times", max_views=3)

    successes, failures = _race(store, created.share_id, created.key)

    assert len(successes) == 3
    assert sorted(r.view_count for r in successes) == [1, 2, 3]
    assert sum(r.consumed for r in successes) == 1
    assert store.get_metadata(created.share_id).view_count == 3


def test_unlimited_share_counts_every_view(store):
    created = store.create_text_share("alice", "for everyone")

    successes, failures = _race(store, created.share_id, created.key)

    assert len(successes) == VIEWERS
    assert failures == []
    assert store.get_metadata(created.share_id).view_count == VIEWERS
