"""Runtime settings read from ``SEALBOX_*`` environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from .core.exceptions import ConfigurationError
from .security.keystore import load_secret

logger = logging.getLogger(__name__)

PREFIX = "SEALBOX_"


@dataclass
class SmtpSettings:
    host: str = ""
    port: int = 587
    user: str = ""
    password: str = ""
    sender: str = "sealbox@localhost"

    @property
    def enabled(self) -> bool:
        return bool(self.host)


@dataclass
class Settings:
    """Everything the service needs at startup."""

    app_secret: str
    base_url: str = "http://localhost:3000"
    data_dir: Path = Path("./data")
    db_path: Optional[Path] = None
    uploads_dir: Optional[Path] = None
    cleanup_interval: int = 5
    max_file_size: int = 100 * 1024 * 1024
    log_level: str = "INFO"
    smtp: SmtpSettings = field(default_factory=SmtpSettings)

    def __post_init__(self):
        self.base_url = self.base_url.rstrip("/")
        self.data_dir = Path(self.data_dir).expanduser()
        self.db_path = Path(self.db_path) if self.db_path else self.data_dir / "sealbox.db"
        self.uploads_dir = Path(self.uploads_dir) if self.uploads_dir else self.data_dir / "uploads"


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(PREFIX + name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{PREFIX}{name} must be an integer")


def load_settings(env: Optional[Mapping[str, str]] = None, require_secret: bool = True) -> Settings:
    """
    Build :class:`Settings` from the environment.

    The signing secret comes from ``SEALBOX_APP_SECRET`` or, failing that, from
    the OS keystore. Without either a ``ConfigurationError`` is raised unless
    ``require_secret`` is False.
    """
    env = os.environ if env is None else env

    secret = env.get(PREFIX + "APP_SECRET") or ""
    if not secret:
        secret = load_secret() or ""
        if secret:
            logger.debug("Signing secret loaded from OS keystore")
    if not secret and require_secret:
        raise ConfigurationError(
            "SEALBOX_APP_SECRET is required (generate one with `sealbox init-secret` or `openssl rand -hex 32`)"
        )

    return Settings(
        app_secret=secret,
        base_url=env.get(PREFIX + "BASE_URL") or "http://localhost:3000",
        data_dir=Path(env.get(PREFIX + "DATA_DIR") or "./data"),
        db_path=env.get(PREFIX + "DB_PATH") or None,
        uploads_dir=env.get(PREFIX + "UPLOADS_DIR") or None,
        cleanup_interval=_int(env, "CLEANUP_INTERVAL", 5),
        max_file_size=_int(env, "MAX_FILE_SIZE", 100) * 1024 * 1024,
        log_level=(env.get(PREFIX + "LOG_LEVEL") or "INFO").upper(),
        smtp=SmtpSettings(
            host=env.get(PREFIX + "SMTP_HOST") or "",
            port=_int(env, "SMTP_PORT", 587),
            user=env.get(PREFIX + "SMTP_USER") or "",
            password=env.get(PREFIX + "SMTP_PASS") or "",
            sender=env.get(PREFIX + "SMTP_FROM") or "sealbox@localhost",
        ),
    )
