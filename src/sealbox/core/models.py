"""
Base data models for shares, drop-box requests and the values returned by core operations

Timestamps are integer unix seconds (UTC), the same unit the database stores.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union


class ShareType(Enum):
    # Where the ciphertext lives: inline (text) or in the blob store (file)
    TEXT = "text"
    FILE = "file"


def to_epoch(value: Union[int, float, datetime, None]) -> Optional[int]:
    """
        Normalize a timestamp argument to integer unix seconds
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp())
    return int(value)


def epoch_to_iso(value: Optional[int]) -> Optional[str]:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc).isoformat()


class ShareMetadata:
    """
        Non-sensitive view of a share, safe to show before a key is supplied
    """

    __slots__ = (
        'share_id',
        'owner_id',
        'share_type',
        'has_password',
        'max_views',
        'view_count',
        'is_consumed',
        'expires_at',
        'created_at',
        'file_name',
        'file_mime',
        'file_size',
    )

    def __init__(
        self,
        share_id,
        owner_id,
        share_type,
        has_password=False,
        max_views=None,
        view_count=0,
        is_consumed=False,
        expires_at=None,
        created_at=None,
        file_name=None,
        file_mime=None,
        file_size=None,
    ):
        self.share_id = share_id
        self.owner_id = owner_id
        self.share_type = share_type if isinstance(share_type, ShareType) else ShareType(share_type)
        self.has_password = bool(has_password)
        self.max_views = max_views
        self.view_count = view_count
        self.is_consumed = bool(is_consumed)
        self.expires_at = expires_at
        self.created_at = created_at
        self.file_name = file_name
        self.file_mime = file_mime
        self.file_size = file_size

    def is_servable(self, now):
        """
            True while the share is unconsumed and not past its expiry
        """
        if self.is_consumed:
            return False
        return self.expires_at is None or self.expires_at > now

    def to_dict(self):
        return {
            'id': self.share_id,
            'owner_id': self.owner_id,
            'type': self.share_type.value,
            'has_password': self.has_password,
            'max_views': self.max_views,
            'view_count': self.view_count,
            'is_consumed': self.is_consumed,
            'expires_at': epoch_to_iso(self.expires_at),
            'created_at': epoch_to_iso(self.created_at),
            'file_name': self.file_name,
            'file_mime': self.file_mime,
            'file_size': self.file_size,
        }

    def __repr__(self):
        return f"ShareMetadata(share_id={self.share_id!r}, type={self.share_type.value!r})"


class Share(ShareMetadata):
    """
        Full share record including ciphertext location and crypto fields

        Carries no key and no password material; those never reach the database.
    """

    __slots__ = ('encrypted_data', 'file_path', 'iv', 'auth_tag', 'key_fingerprint')

    def __init__(self, encrypted_data=None, file_path=None, iv="", auth_tag="", key_fingerprint="", **kwargs):
        super().__init__(**kwargs)
        self.encrypted_data = encrypted_data
        self.file_path = file_path
        self.iv = iv
        self.auth_tag = auth_tag
        self.key_fingerprint = key_fingerprint

    def __repr__(self):
        return f"Share(share_id={self.share_id!r}, type={self.share_type.value!r})"


class DropRequest:
    """
        Single-use inbound upload channel
    """

    __slots__ = ('request_id', 'token', 'owner_id', 'is_consumed', 'expires_at', 'created_at')

    def __init__(self, request_id, token, owner_id, expires_at, is_consumed=False, created_at=None):
        self.request_id = request_id
        self.token = token
        self.owner_id = owner_id
        self.expires_at = expires_at
        self.is_consumed = bool(is_consumed)
        self.created_at = created_at

    def is_servable(self, now):
        return not self.is_consumed and self.expires_at > now

    def to_dict(self):
        return {
            'id': self.request_id,
            'owner_id': self.owner_id,
            'is_consumed': self.is_consumed,
            'expires_at': epoch_to_iso(self.expires_at),
            'created_at': epoch_to_iso(self.created_at),
        }

    def __repr__(self):
        # token deliberately left out
        return f"DropRequest(request_id={self.request_id!r}, owner_id={self.owner_id!r})"


def share_from_row(row):
    """
        Build a Share from a ``shares`` row dict
    """
    return Share(
        share_id=row['id'],
        owner_id=row['owner_id'],
        share_type=row['type'],
        encrypted_data=row.get('encrypted_data'),
        file_path=row.get('file_path'),
        file_name=row.get('file_name'),
        file_mime=row.get('file_mime'),
        file_size=row.get('file_size'),
        iv=row['iv'],
        auth_tag=row['auth_tag'],
        key_fingerprint=row['key_fingerprint'],
        has_password=row['has_password'],
        max_views=row.get('max_views'),
        view_count=row.get('view_count', 0),
        is_consumed=row.get('is_consumed', 0),
        expires_at=row.get('expires_at'),
        created_at=row.get('created_at'),
    )


def metadata_from_row(row):
    return ShareMetadata(
        share_id=row['id'],
        owner_id=row['owner_id'],
        share_type=row['type'],
        has_password=row['has_password'],
        max_views=row.get('max_views'),
        view_count=row.get('view_count', 0),
        is_consumed=row.get('is_consumed', 0),
        expires_at=row.get('expires_at'),
        created_at=row.get('created_at'),
        file_name=row.get('file_name'),
        file_mime=row.get('file_mime'),
        file_size=row.get('file_size'),
    )


def request_from_row(row):
    return DropRequest(
        request_id=row['id'],
        token=row['token'],
        owner_id=row['owner_id'],
        expires_at=row['expires_at'],
        is_consumed=row.get('is_consumed', 0),
        created_at=row.get('created_at'),
    )


@dataclass
class CreatedShare:
    """Returned once by share creation; the server keeps no copy of ``key``."""

    share_id: str
    key: str
    password_token: Optional[str] = None


@dataclass
class ViewResult:
    """Plaintext released by a successful view."""

    share_type: ShareType
    view_count: int
    consumed: bool
    text: Optional[str] = None
    data: Optional[bytes] = None
    file_name: Optional[str] = None
    file_mime: Optional[str] = None
    file_size: Optional[int] = None


@dataclass
class TextPayload:
    text: str


@dataclass
class FilePayload:
    data: bytes
    file_name: str
    file_mime: str = "application/octet-stream"


@dataclass
class CreatedRequest:
    request_id: str
    token: str
    url: str
    expires_at: int


@dataclass
class FulfilledRequest:
    share_id: str
    view_url: str
    notified: bool
