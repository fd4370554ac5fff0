"""Unit tests for the BlobStore core module."""

from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from sealbox.core.exceptions import StorageFaultError
from sealbox.core.storage import BlobStore


@pytest.fixture
def blobs(tmp_path):
    """Return a BlobStore rooted in tmp_path."""
    return BlobStore(tmp_path / "uploads")


def test_root_is_created(tmp_path):
    BlobStore(tmp_path / "nested" / "uploads")
    assert (tmp_path / "nested" / "uploads").is_dir()


def test_blob_path_is_month_partitioned(blobs):
    when = datetime(2026, 3, 9, tzinfo=timezone.utc)
    path = blobs.blob_path("abc123", when)
    assert path == blobs.root / "2026-03" / "abc123.enc"


@pytest.mark.parametrize("bad", ["", "../escape", "a/b", "a\\b", ".hidden"])
def test_blob_path_rejects_unsafe_ids(blobs, bad):
    with pytest.raises(ValueError):
        blobs.blob_path(bad)


def test_put_and_get(blobs):
    path = blobs.put("share1", b"\x00ciphertext\xff")
    assert path.exists()
    assert path.parent.parent == blobs.root
    assert blobs.get(path) == b"\x00ciphertext\xff"
    # no temp file left behind
    assert list(path.parent.iterdir()) == [path]


def test_get_missing_raises_storage_fault(blobs):
    with pytest.raises(StorageFaultError):
        blobs.get(blobs.root / "2026-01" / "missing.enc")


def test_delete_removes_blob(blobs):
    path = blobs.put("share2", b"data")
    assert blobs.delete(path) is True
    assert not path.exists()


def test_delete_missing_or_empty_is_success(blobs):
    assert blobs.delete(blobs.root / "nope.enc") is True
    assert blobs.delete(None) is True
    assert blobs.delete("") is True


def test_delete_failure_is_logged_not_raised(blobs, caplog):
    path = blobs.put("share3", b"data")
    with patch.object(Path, "unlink", side_effect=PermissionError("denied")):
        assert blobs.delete(path) is False
    assert path.exists()
    assert "Failed to delete blob" in caplog.text
