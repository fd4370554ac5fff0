"""
Blob storage for encrypted file payloads

Structure Map for reference:
==============================
 - <uploads_root>/
      - {YYYY-MM}/
          - {share_id}.enc
==============================
For reference:
> Only ciphertext is ever written here. The database row is authoritative for
  whether a share exists; a blob without a row is garbage, a row without a
  blob is a storage fault.
> Paths are derived from the share id and the creation month, which keeps
  directory sizes bounded.
> Writes complete before the row referencing them is inserted.
"""

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from .exceptions import StorageFaultError

logger = logging.getLogger(__name__)


class BlobStore:
    """Month-partitioned store of encrypted share payloads"""

    def __init__(self, root_path: Union[str, Path]):
        self.root = Path(root_path).expanduser()
        self.root.mkdir(parents=True, exist_ok=True)

    def month_root(self, when: Optional[datetime] = None) -> Path:
        when = when or datetime.now(timezone.utc)
        return self.root / when.strftime("%Y-%m")

    def blob_path(self, share_id: str, when: Optional[datetime] = None) -> Path:
        if not share_id or "/" in share_id or "\\" in share_id or share_id.startswith("."):
            raise ValueError("Invalid share id for blob path")
        return self.month_root(when) / f"{share_id}.enc"

    def put(self, share_id: str, ciphertext: bytes, when: Optional[datetime] = None) -> Path:
        """Write ciphertext for ``share_id`` and return its path."""
        destination = self.blob_path(share_id, when)
        destination.parent.mkdir(parents=True, exist_ok=True)
        tmp = destination.with_suffix(".enc.part")
        with open(tmp, "wb") as f:
            f.write(ciphertext)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, destination)
        return destination

    def get(self, path: Union[str, Path]) -> bytes:
        """Read a blob; raise StorageFaultError if it is missing or unreadable."""
        p = Path(path)
        try:
            with open(p, "rb") as f:
                return f.read()
        except OSError as e:
            logger.error("Blob unreadable at %s: %s", p, e)
            raise StorageFaultError()

    def delete(self, path: Union[str, Path, None]) -> bool:
        """
        Remove a blob, best-effort.

        Returns True when the file was removed or was already gone; failures
        are logged and reported as False, never raised.
        """
        if not path:
            return True
        p = Path(path)
        try:
            p.unlink()
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.warning("Failed to delete blob %s: %s", p, e)
            return False
        return True
