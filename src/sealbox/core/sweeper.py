"""Background storage reclamation for shares, drop-box requests and sessions.

The guarded read path never relies on this; it only frees space held by
records that are already past their servable window.
"""

import logging
import threading
from typing import Callable, Dict, Iterable, Optional, Tuple

logger = logging.getLogger(__name__)

Sweep = Tuple[str, Callable[[], int]]


class CleanupSweeper:
    """Run a fixed set of sweep callables once at start, then every ``interval_minutes``."""

    def __init__(self, sweeps: Iterable[Sweep], interval_minutes: float = 5):
        if interval_minutes <= 0:
            raise ValueError("interval_minutes must be positive")
        self.sweeps = list(sweeps)
        self.interval_seconds = float(interval_minutes) * 60
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_once(self) -> Dict[str, int]:
        """Run every sweep; a failing sweep counts as 0 and does not stop the others."""
        counts = {}
        for name, sweep in self.sweeps:
            try:
                counts[name] = int(sweep() or 0)
            except Exception:
                logger.exception("Cleanup of %s failed", name)
                counts[name] = 0
        if any(counts.values()):
            summary = ", ".join(f"{count} {name}" for name, count in counts.items())
            logger.info("Cleanup removed: %s", summary)
        return counts

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            self.run_once()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> Dict[str, int]:
        """Sweep eagerly, then keep sweeping on a daemon thread."""
        if self.running:
            raise RuntimeError("Sweeper already running")
        counts = self.run_once()
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="sealbox-sweeper", daemon=True)
        self._thread.start()
        logger.info("Cleanup scheduled every %g minutes", self.interval_seconds / 60)
        return counts

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def run_forever(self) -> None:
        """Start and block until interrupted (CLI use)."""
        self.start()
        try:
            while self.running:
                self._thread.join(1.0)
        except KeyboardInterrupt:
            logger.info("Stopping cleanup sweeper")
        finally:
            self.stop()
