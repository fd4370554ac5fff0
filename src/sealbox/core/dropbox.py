"""
Drop-box protocol: single-use inbound links that deposit data into a share owned by the requester.

The uploader never picks a password. One is generated per upload so the
resulting share gets the same at-rest protection as any password-protected
share, and it is mailed to the owner together with the view link.
"""

import logging
import secrets
from typing import Callable, Optional, Union

from ..database.connection import DatabaseConnection
from ..database.models import DropRequestModel
from .exceptions import NotFoundOrExpiredError
from .models import CreatedRequest, DropRequest, FilePayload, FulfilledRequest, TextPayload
from .share_store import ShareStore

logger = logging.getLogger(__name__)

DEFAULT_TTL_HOURS = 48
REQUEST_ID_BYTES = 9
TOKEN_BYTES = 24
PASSWORD_BYTES = 16


def build_view_url(base_url: str, share_id: str, key: str, password_token: Optional[str] = None) -> str:
    """
    Share link with the secrets in the fragment.

    The fragment is ``key`` or ``key.password_token``; keys are base64url and
    never contain a dot, so the first dot separates the two.
    """
    fragment = key if not password_token else f"{key}.{password_token}"
    return f"{base_url.rstrip('/')}/view/{share_id}#{fragment}"


def parse_view_fragment(fragment: str):
    """Split a view-link fragment back into (key, password_token or None)."""
    key, _, token = fragment.lstrip("#").partition(".")
    return key, (token or None)


class DropBoxService:
    """Create, look up and fulfil drop-box requests."""

    def __init__(
        self,
        db_connection: DatabaseConnection,
        share_store: ShareStore,
        base_url: str,
        mailer=None,
        resolve_recipient: Optional[Callable[[str], Optional[str]]] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.request_model = DropRequestModel(db_connection)
        self.share_store = share_store
        self.base_url = base_url.rstrip("/")
        self.mailer = mailer
        self.resolve_recipient = resolve_recipient or (lambda owner_id: owner_id)
        self._clock = clock or share_store.now

    def now(self) -> int:
        return int(self._clock())

    def create_request(self, owner_id: str, ttl_hours: int = DEFAULT_TTL_HOURS) -> CreatedRequest:
        if ttl_hours <= 0:
            raise ValueError("ttl_hours must be positive")
        now = self.now()
        request = DropRequest(
            request_id=secrets.token_urlsafe(REQUEST_ID_BYTES),
            token=secrets.token_urlsafe(TOKEN_BYTES),
            owner_id=owner_id,
            expires_at=now + int(ttl_hours * 3600),
            created_at=now,
        )
        self.request_model.create(request)
        logger.info("Created drop-box request %s for %s", request.request_id, owner_id)
        return CreatedRequest(
            request_id=request.request_id,
            token=request.token,
            url=f"{self.base_url}/upload/{request.token}",
            expires_at=request.expires_at,
        )

    def get_request(self, token: str) -> Optional[DropRequest]:
        """Servable request for ``token`` or None."""
        return self.request_model.get_servable(token, self.now())

    def list_requests(self, owner_id: str):
        return self.request_model.list_by_owner(owner_id)

    def fulfill(self, token: str, payload: Union[TextPayload, FilePayload]) -> FulfilledRequest:
        """
        Turn an upload into a password-protected share for the request owner.

        The request is claimed first, so of two concurrent uploads only one
        creates a share. A failed share creation releases the claim. Mail
        delivery is best-effort.
        """
        request = self.request_model.claim(token, self.now())
        if request is None:
            raise NotFoundOrExpiredError()

        password = secrets.token_urlsafe(PASSWORD_BYTES)
        try:
            if isinstance(payload, TextPayload):
                created = self.share_store.create_text_share(
                    owner_id=request.owner_id, text=payload.text, password=password
                )
            elif isinstance(payload, FilePayload):
                created = self.share_store.create_file_share(
                    owner_id=request.owner_id,
                    data=payload.data,
                    file_name=payload.file_name,
                    file_mime=payload.file_mime,
                    password=password,
                )
            else:
                raise TypeError(f"Unsupported payload type: {type(payload).__name__}")
        except Exception:
            self.request_model.release(request.request_id)
            raise

        view_url = build_view_url(self.base_url, created.share_id, created.key, created.password_token)
        logger.info("Drop-box request %s fulfilled as share %s", request.request_id, created.share_id)
        notified = self._notify(request, view_url, password)
        return FulfilledRequest(share_id=created.share_id, view_url=view_url, notified=notified)

    def _notify(self, request: DropRequest, view_url: str, password: str) -> bool:
        if self.mailer is None:
            logger.warning("No mailer configured; owner of request %s was not notified", request.request_id)
            return False
        recipient = self.resolve_recipient(request.owner_id)
        if not recipient:
            logger.warning("No recipient for owner %s; notification skipped", request.owner_id)
            return False
        try:
            self.mailer.send_upload_notification(recipient, view_url, password)
        except Exception:
            logger.exception("Failed to send upload notification for request %s", request.request_id)
            return False
        return True

    def cleanup_expired(self) -> int:
        return self.request_model.delete_unservable(self.now())
