"""Small helper to wire a SealBox service context from settings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .config import Settings
from .core.dropbox import DropBoxService
from .core.sessions import SessionStore
from .core.share_store import ShareStore
from .core.storage import BlobStore
from .core.sweeper import CleanupSweeper
from .database.connection import DatabaseConnection
from .notify.mailer import SmtpMailer


@dataclass
class AppContext:
    """Container for runtime objects the surrounding service layer needs."""

    settings: Settings
    db: DatabaseConnection
    shares: ShareStore
    dropbox: DropBoxService
    sessions: SessionStore
    sweeper: CleanupSweeper

    def close(self) -> None:
        self.sweeper.stop()
        self.db.close()


def build_context(settings: Settings, mailer: Optional[object] = None) -> AppContext:
    """
    Initialize the database and blob store and assemble the core services.

    A mailer is built from the SMTP settings when none is passed and a host
    is configured; otherwise drop-box notifications are skipped (and logged).
    """
    db = DatabaseConnection(str(settings.db_path))
    db.initialize()

    blobs = BlobStore(settings.uploads_dir)
    shares = ShareStore(
        db,
        blobs,
        settings.app_secret,
        max_file_size=settings.max_file_size,
    )

    if mailer is None and settings.smtp.enabled:
        mailer = SmtpMailer(
            host=settings.smtp.host,
            port=settings.smtp.port,
            user=settings.smtp.user,
            password=settings.smtp.password,
            sender=settings.smtp.sender,
        )

    dropbox = DropBoxService(db, shares, settings.base_url, mailer=mailer)
    sessions = SessionStore(db)
    sweeper = CleanupSweeper(
        [
            ("shares", shares.sweep_expired),
            ("requests", dropbox.cleanup_expired),
            ("sessions", sessions.cleanup_expired),
        ],
        interval_minutes=settings.cleanup_interval,
    )
    return AppContext(
        settings=settings,
        db=db,
        shares=shares,
        dropbox=dropbox,
        sessions=sessions,
        sweeper=sweeper,
    )
