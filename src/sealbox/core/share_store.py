"""
ShareStore: creation, metadata lookup, guarded decryption with view accounting, deletion and expiry sweep.

What the database ends up holding for a share is ciphertext (or a blob path),
iv, tag, a truncated key fingerprint and policy fields. The key goes back to
the creator exactly once; a password only ever leaves as a signed token
wrapping its Argon2 hash.
"""

import logging
import secrets
import time
from typing import Callable, List, Optional, Union

from argon2 import PasswordHasher

from ..database.connection import DatabaseConnection
from ..database.models import ShareModel
from ..security.crypto import (
    AuthenticationFailed,
    decode_key,
    decrypt,
    encode_key,
    encrypt,
    fingerprints_match,
    generate_key,
    key_fingerprint,
)
from ..security.kdf import TokenCheck, check_password_token, issue_password_token
from .exceptions import (
    AlreadyConsumedError,
    DecryptionFailedError,
    InvalidKeyError,
    InvalidPasswordError,
    NotFoundOrExpiredError,
    PasswordRequiredError,
    StorageFaultError,
)
from .models import CreatedShare, Share, ShareMetadata, ShareType, ViewResult, to_epoch
from .storage import BlobStore

logger = logging.getLogger(__name__)

SHARE_ID_BYTES = 12


def new_share_id() -> str:
    return secrets.token_urlsafe(SHARE_ID_BYTES)


def _epoch_now() -> int:
    return int(time.time())


class ShareStore:
    """High-level share operations over the blob store and database."""

    def __init__(
        self,
        db_connection: DatabaseConnection,
        blob_store: BlobStore,
        secret: Union[str, bytes],
        clock: Optional[Callable[[], int]] = None,
        password_hasher: Optional[PasswordHasher] = None,
        max_file_size: Optional[int] = None,
    ):
        if not secret:
            raise ValueError("A signing secret is required")
        self.db = db_connection
        self.blobs = blob_store
        self.share_model = ShareModel(self.db)
        self._secret = secret
        self._clock = clock or _epoch_now
        self._hasher = password_hasher
        self.max_file_size = max_file_size

    def now(self) -> int:
        return int(self._clock())

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def _validate_policy(self, max_views):
        if max_views is not None and int(max_views) < 1:
            raise ValueError("max_views must be at least 1")

    def _issue_token(self, password):
        if not password:
            return None
        return issue_password_token(password, self._secret, self._hasher)

    def create_text_share(
        self,
        owner_id: str,
        text: str,
        password: Optional[str] = None,
        max_views: Optional[int] = None,
        expires_at=None,
    ) -> CreatedShare:
        """Encrypt ``text`` and persist it inline; return id, key and optional password token."""
        self._validate_policy(max_views)
        key = generate_key()
        payload = encrypt(text, key)
        password_token = self._issue_token(password)

        share = Share(
            share_id=new_share_id(),
            owner_id=owner_id,
            share_type=ShareType.TEXT,
            encrypted_data=payload.ciphertext,
            iv=payload.iv,
            auth_tag=payload.auth_tag,
            key_fingerprint=key_fingerprint(key),
            has_password=password_token is not None,
            max_views=max_views,
            expires_at=to_epoch(expires_at),
            created_at=self.now(),
        )
        self.share_model.create(share)
        logger.info("Created text share %s", share.share_id)
        return CreatedShare(share_id=share.share_id, key=encode_key(key), password_token=password_token)

    def create_file_share(
        self,
        owner_id: str,
        data: bytes,
        file_name: str,
        file_mime: str = "application/octet-stream",
        password: Optional[str] = None,
        max_views: Optional[int] = None,
        expires_at=None,
    ) -> CreatedShare:
        """
        Encrypt ``data`` into the blob store, then register the share row.

        Only the blob path, file name, MIME type and plaintext size are kept
        inline. If the row cannot be written the blob is removed again.
        """
        self._validate_policy(max_views)
        if self.max_file_size is not None and len(data) > self.max_file_size:
            raise ValueError("File exceeds the maximum allowed size")

        share_id = new_share_id()
        key = generate_key()
        payload = encrypt(data, key)
        path = self.blobs.put(share_id, payload.ciphertext)
        password_token = self._issue_token(password)

        share = Share(
            share_id=share_id,
            owner_id=owner_id,
            share_type=ShareType.FILE,
            file_path=str(path),
            file_name=file_name,
            file_mime=file_mime or "application/octet-stream",
            file_size=len(data),
            iv=payload.iv,
            auth_tag=payload.auth_tag,
            key_fingerprint=key_fingerprint(key),
            has_password=password_token is not None,
            max_views=max_views,
            expires_at=to_epoch(expires_at),
            created_at=self.now(),
        )
        try:
            self.share_model.create(share)
        except Exception:
            self.blobs.delete(path)
            raise
        logger.info("Created file share %s (%d bytes)", share_id, len(data))
        return CreatedShare(share_id=share_id, key=encode_key(key), password_token=password_token)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_metadata(self, share_id: str) -> Optional[ShareMetadata]:
        """Non-sensitive fields for a pre-key landing page; never counts as a view."""
        return self.share_model.get_metadata(share_id)

    def list_shares(self, owner_id: str, limit: int = 50) -> List[ShareMetadata]:
        return self.share_model.list_by_owner(owner_id, limit)

    def _key_matches(self, key: str, share: Share) -> bool:
        try:
            decode_key(key)
        except ValueError:
            return False
        return fingerprints_match(key_fingerprint(key), share.key_fingerprint)

    def _check_password(self, share: Share, password, password_token):
        if not password or not password_token:
            raise PasswordRequiredError()
        result = check_password_token(password_token, password, self._secret, self._hasher)
        if result is TokenCheck.INVALID_TOKEN:
            logger.info("Rejected forged or tampered password token for share %s", share.share_id)
            raise InvalidPasswordError()
        if result is TokenCheck.WRONG_PASSWORD:
            raise InvalidPasswordError()

    def _raise_unservable(self, share_id: str, key: str, now: int):
        # only a key holder learns that the view limit was reached
        share = self.share_model.get(share_id)
        if (
            share is not None
            and share.is_consumed
            and (share.expires_at is None or share.expires_at > now)
            and self._key_matches(key, share)
        ):
            raise AlreadyConsumedError()
        raise NotFoundOrExpiredError()

    def _account_view(self, share: Share):
        if share.max_views:
            counted = self.share_model.consume_view(share.share_id)
            if counted is None:
                raise AlreadyConsumedError()
            return counted
        # unlimited: the row may have been swept since the snapshot; the view still stands
        new_count = self.share_model.count_view(share.share_id)
        return (new_count if new_count is not None else share.view_count + 1), False

    def _load_ciphertext(self, share: Share) -> bytes:
        if share.share_type is ShareType.TEXT:
            if share.encrypted_data is None:
                logger.error("Text share %s has no ciphertext", share.share_id)
                raise StorageFaultError()
            return share.encrypted_data
        if not share.file_path:
            logger.error("File share %s has no blob path", share.share_id)
            raise StorageFaultError()
        return self.blobs.get(share.file_path)

    def _decrypt(self, share: Share, ciphertext: bytes, key: bytes) -> bytes:
        try:
            return decrypt(ciphertext, key, share.iv, share.auth_tag)
        except AuthenticationFailed as e:
            logger.error("Decryption failed for share %s despite fingerprint match: %s", share.share_id, e)
            raise DecryptionFailedError()

    def view(
        self,
        share_id: str,
        key: str,
        password: Optional[str] = None,
        password_token: Optional[str] = None,
    ) -> ViewResult:
        """
        Guarded read path. Checks short-circuit in this order:

        1. servable fetch (snapshot)      -> NotFoundOrExpiredError, or
                                             AlreadyConsumedError for a consumed,
                                             unexpired share and a matching key
        2. key fingerprint                -> InvalidKeyError
        3. password + token               -> PasswordRequiredError / InvalidPasswordError
        4. ciphertext into the snapshot   -> StorageFaultError
        5. atomic view accounting         -> AlreadyConsumedError
        6. AEAD decryption                -> DecryptionFailedError
        7. blob removal when this view consumed a file share (best-effort)

        The ciphertext is read before counting, so a sweep or a consuming
        viewer removing the blob afterwards cannot fail a counted view.
        """
        now = self.now()
        share = self.share_model.get_servable(share_id, now)
        if share is None:
            self._raise_unservable(share_id, key, now)

        if not self._key_matches(key, share):
            raise InvalidKeyError()

        if share.has_password:
            self._check_password(share, password, password_token)

        ciphertext = self._load_ciphertext(share)
        view_count, consumed = self._account_view(share)

        try:
            plaintext = self._decrypt(share, ciphertext, decode_key(key))
        finally:
            if consumed and share.share_type is ShareType.FILE:
                self.blobs.delete(share.file_path)

        if consumed:
            logger.info("Share %s consumed after %d view(s)", share_id, view_count)

        if share.share_type is ShareType.TEXT:
            return ViewResult(
                share_type=ShareType.TEXT,
                view_count=view_count,
                consumed=consumed,
                text=plaintext.decode("utf-8"),
            )
        return ViewResult(
            share_type=ShareType.FILE,
            view_count=view_count,
            consumed=consumed,
            data=plaintext,
            file_name=share.file_name,
            file_mime=share.file_mime,
            file_size=share.file_size,
        )

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def delete(self, share_id: str, key: str) -> bool:
        """
        Delete a servable share after the same proof of key possession as viewing.

        Expired or consumed shares read as absent here; the sweeper owns them.
        """
        share = self.share_model.get_servable(share_id, self.now())
        if share is None or not self._key_matches(key, share):
            return False
        if share.file_path:
            self.blobs.delete(share.file_path)
        removed = self.share_model.delete(share_id)
        if removed:
            logger.info("Deleted share %s", share_id)
        return removed

    def sweep_expired(self) -> int:
        """
        Remove every expired or consumed share and its blob.

        A row whose blob could not be removed is kept for the next pass.
        """
        now = self.now()
        ready = []
        for row in self.share_model.list_unservable(now):
            if self.blobs.delete(row.get("file_path")):
                ready.append(row["id"])
        return self.share_model.delete_unservable(ready, now)
