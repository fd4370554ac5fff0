"""
Unit tests for core data models.
"""

from datetime import datetime, timedelta, timezone

import pytest

from sealbox.core.models import (
    DropRequest,
    Share,
    ShareMetadata,
    ShareType,
    epoch_to_iso,
    metadata_from_row,
    request_from_row,
    share_from_row,
    to_epoch,
)


NOW = 1_800_000_000


# ==============================================================================
# Timestamp helpers
# ==============================================================================

class TestTimestamps:
    def test_to_epoch_passthrough(self):
        assert to_epoch(None) is None
        assert to_epoch(NOW) == NOW
        assert to_epoch(NOW + 0.9) == NOW

    def test_to_epoch_aware_datetime(self):
        when = datetime(2030, 1, 1, tzinfo=timezone(timedelta(hours=2)))
        assert to_epoch(when) == int(when.timestamp())

    def test_to_epoch_naive_is_utc(self):
        naive = datetime(2030, 1, 1, 12, 0, 0)
        assert to_epoch(naive) == int(naive.replace(tzinfo=timezone.utc).timestamp())

    def test_epoch_to_iso(self):
        assert epoch_to_iso(None) is None
        assert epoch_to_iso(0) == "1970-01-01T00:00:00+00:00"


# ==============================================================================
# ShareMetadata / Share
# ==============================================================================

class TestShareMetadata:
    def test_type_coerced_from_string(self):
        meta = ShareMetadata(share_id="s", owner_id="o", share_type="file", has_password=1, is_consumed=0)
        assert meta.share_type is ShareType.FILE
        assert meta.has_password is True
        assert meta.is_consumed is False

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            ShareMetadata(share_id="s", owner_id="o", share_type="folder")

    @pytest.mark.parametrize(
        "expires_at, consumed, servable",
        [
            (None, False, True),
            (NOW + 1, False, True),
            (NOW, False, False),
            (NOW - 1, False, False),
            (None, True, False),
        ],
    )
    def test_is_servable(self, expires_at, consumed, servable):
        meta = ShareMetadata("s", "o", ShareType.TEXT, expires_at=expires_at, is_consumed=consumed)
        assert meta.is_servable(NOW) is servable

    def test_to_dict(self):
        meta = ShareMetadata(
            "s", "o", ShareType.FILE, max_views=2, expires_at=0, created_at=0,
            file_name="a.pdf", file_mime="application/pdf", file_size=10,
        )
        d = meta.to_dict()
        assert d["id"] == "s"
        assert d["type"] == "file"
        assert d["expires_at"] == "1970-01-01T00:00:00+00:00"
        assert d["file_size"] == 10
        assert "key_fingerprint" not in d

    def test_share_extends_metadata_with_crypto_fields(self):
        share = Share(
            share_id="s", owner_id="o", share_type=ShareType.TEXT,
            encrypted_data=b"ct", iv="iv", auth_tag="tag", key_fingerprint="fp", view_count=3,
        )
        meta = ShareMetadata("s", "o", ShareType.TEXT)
        assert isinstance(share, ShareMetadata)
        assert share.view_count == 3
        assert share.iv == "iv"
        assert not hasattr(meta, "iv")
        assert repr(share) == "Share(share_id='s', type='text')"
        assert repr(meta) == "ShareMetadata(share_id='s', type='text')"


# ==============================================================================
# Row conversion
# ==============================================================================

class TestRows:
    def _row(self, **overrides):
        row = {
            "id": "s1", "owner_id": "o", "type": "text", "encrypted_data": b"ct",
            "file_path": None, "file_name": None, "file_mime": None, "file_size": None,
            "iv": "iv", "auth_tag": "tag", "key_fingerprint": "fp", "has_password": 0,
            "max_views": 1, "view_count": 0, "is_consumed": 0, "expires_at": None, "created_at": NOW,
        }
        row.update(overrides)
        return row

    def test_share_from_row(self):
        share = share_from_row(self._row(has_password=1))
        assert share.encrypted_data == b"ct"
        assert share.has_password is True
        assert share.max_views == 1

    def test_metadata_from_row(self):
        meta = metadata_from_row(self._row(type="file", file_name="f.bin"))
        assert meta.share_type is ShareType.FILE
        assert meta.file_name == "f.bin"

    def test_request_from_row(self):
        row = {"id": "r", "token": "t", "owner_id": "o", "expires_at": NOW, "is_consumed": 1, "created_at": NOW}
        request = request_from_row(row)
        assert request.is_consumed is True
        assert request.is_servable(NOW - 1) is False


# ==============================================================================
# DropRequest
# ==============================================================================

class TestDropRequest:
    def test_is_servable(self):
        request = DropRequest("r", "secret-token", "o", expires_at=NOW + 10)
        assert request.is_servable(NOW) is True
        assert request.is_servable(NOW + 10) is False

    def test_token_kept_out_of_repr_and_dict(self):
        request = DropRequest("r", "secret-token", "o", expires_at=NOW, created_at=NOW)
        assert "secret-token" not in repr(request)
        assert "secret-token" not in str(request.to_dict())
