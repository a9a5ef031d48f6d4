"""
Periodic purge of appointments that lie in the past.

`ExpirySweeper` runs `purge_expired` on its own daemon thread every
`interval` seconds. Runs never overlap: a call to `run_once` that finds
another run in progress returns None without touching the database.
Errors are logged and the next tick runs as usual. `stop()` cancels the
schedule and waits for the thread to exit.
"""

from __future__ import annotations

import atexit
import logging
import threading
from datetime import datetime

from .appointments.service import purge_expired

logger = logging.getLogger(__name__)


class ExpirySweeper:
    def __init__(self, app, interval: float = 60):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.app = app
        self.interval = interval
        self._run_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="expiry-sweeper", daemon=True)
        self._thread.start()
        logger.info("Expiry sweeper started (every %ss)", self.interval)

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Expiry sweeper stopped")

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            self.run_once()

    def run_once(self, now: datetime | None = None) -> int | None:
        """Delete expired appointments; return how many, or None if skipped/failed."""
        if not self._run_lock.acquire(blocking=False):
            logger.info("Expiry sweep already in progress, skipping this tick")
            return None
        try:
            with self.app.app_context():
                deleted = purge_expired(now)
            logger.info("Expiry sweep deleted %d appointment(s)", deleted)
            return deleted
        except Exception:
            logger.exception("Expiry sweep failed")
            return None
        finally:
            self._run_lock.release()


def init_app(app) -> ExpirySweeper:
    sweeper = ExpirySweeper(app, interval=app.config.get("SWEEP_INTERVAL_SECONDS") or 60)
    app.extensions["sweeper"] = sweeper
    if app.config.get("SWEEPER_ENABLED", True):
        sweeper.start()
        atexit.register(sweeper.stop)
    return sweeper
