"""
Background delivery of outgoing email.

Request handlers hand messages to `NotificationQueue.enqueue` and return
immediately. A single worker thread takes job ids off an internal
`queue.Queue`, sends each message through the configured transport and
retries failed sends with exponential backoff. Every job keeps an
observable status:

    queued -> sending -> sent
                      -> failed   (after max_attempts, or on shutdown)

Final failures are logged and never raised to the caller. `shutdown()` is
registered to run at interpreter exit: it waits for the queue to drain, then
stops the worker and marks jobs that never left the queue as failed.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from email.message import EmailMessage

from ..errors import NotificationError

logger = logging.getLogger(__name__)

QUEUED = "queued"
SENDING = "sending"
SENT = "sent"
FAILED = "failed"


@dataclass
class NotificationJob:
    kind: str
    message: EmailMessage
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: str = QUEUED
    attempts: int = 0
    last_error: str | None = None

    @property
    def finished(self) -> bool:
        return self.status in (SENT, FAILED)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "to": self.message["To"],
            "status": self.status,
            "attempts": self.attempts,
            "last_error": self.last_error,
        }


class NotificationQueue:
    def __init__(self, transport, max_attempts: int = 3, backoff: float = 2.0, max_history: int = 1000):
        self.transport = transport
        self.max_attempts = max(1, int(max_attempts))
        self.backoff = backoff
        self.max_history = max_history

        self._inbox: queue.Queue = queue.Queue()
        self._jobs: OrderedDict[str, NotificationJob] = OrderedDict()
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._worker: threading.Thread | None = None

    def start(self) -> None:
        if self._worker is not None and self._worker.is_alive():
            return
        self._stop.clear()
        self._worker = threading.Thread(target=self._run, name="notification-worker", daemon=True)
        self._worker.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        self._inbox.put(None)
        if self._worker is not None:
            self._worker.join(timeout)
            self._worker = None
        with self._lock:
            leftover = [job for job in self._jobs.values() if job.status == QUEUED]
        for job in leftover:
            job.last_error = "not sent before shutdown"
            self._fail(job)

    def shutdown(self, timeout: float | None = 10.0) -> None:
        """Give queued jobs up to `timeout` seconds to finish, then stop."""
        if self._worker is not None and not self.wait_idle(timeout):
            logger.warning("Notification queue still busy after %ss, stopping anyway", timeout)
        self.stop()

    def enqueue(self, message: EmailMessage, kind: str) -> str:
        job = NotificationJob(kind=kind, message=message)
        with self._lock:
            self._jobs[job.id] = job
            self._prune()
        self._inbox.put(job.id)
        logger.info("Queued %s email %s to %s", kind, job.id, message["To"])
        return job.id

    def status(self, job_id: str) -> dict | None:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.to_dict() if job else None

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until every queued job is sent or failed."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._inbox.all_tasks_done:
            while self._inbox.unfinished_tasks:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._inbox.all_tasks_done.wait(remaining)
        return True

    def _prune(self) -> None:
        while len(self._jobs) > self.max_history:
            oldest_id, oldest = next(iter(self._jobs.items()))
            if not oldest.finished:
                break
            del self._jobs[oldest_id]

    def _run(self) -> None:
        while True:
            job_id = self._inbox.get()
            try:
                if job_id is None:
                    return
                with self._lock:
                    job = self._jobs.get(job_id)
                if job is not None:
                    self._deliver(job)
            finally:
                self._inbox.task_done()

    def _deliver(self, job: NotificationJob) -> None:
        delay = self.backoff
        while True:
            job.attempts += 1
            job.status = SENDING
            try:
                self.transport.send(job.message)
            except Exception as e:  # smtplib, socket and backend errors alike
                job.last_error = f"{type(e).__name__}: {e}"
                if job.attempts >= self.max_attempts:
                    self._fail(job)
                    return
                logger.warning(
                    "Sending %s email %s failed (attempt %d/%d), retrying in %.1fs: %s",
                    job.kind, job.id, job.attempts, self.max_attempts, delay, job.last_error,
                )
                if self._stop.wait(delay):
                    self._fail(job)
                    return
                delay *= 2
                continue

            job.status = SENT
            logger.info("Sent %s email %s to %s", job.kind, job.id, job.message["To"])
            return

    def _fail(self, job: NotificationJob) -> None:
        job.status = FAILED
        err = NotificationError(
            f"Giving up on {job.kind} email {job.id} to {job.message['To']} "
            f"after {job.attempts} attempt(s): {job.last_error}"
        )
        logger.error("%s", err.message)
