from __future__ import annotations

import logging
import smtplib
import ssl
import threading
from email.message import EmailMessage

logger = logging.getLogger(__name__)


class SMTPTransport:
    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout: float = 30,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def send(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls(context=ssl.create_default_context())
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(message)


class ConsoleTransport:
    """Write messages to the log instead of sending them."""

    def send(self, message: EmailMessage) -> None:
        body = message.get_body(preferencelist=("plain",))
        logger.info(
            "Email to %s | %s\n%s",
            message["To"],
            message["Subject"],
            body.get_content() if body is not None else "",
        )


class MemoryTransport:
    """Keep sent messages in `outbox`."""

    def __init__(self):
        self.outbox: list[EmailMessage] = []
        self._lock = threading.Lock()

    def send(self, message: EmailMessage) -> None:
        with self._lock:
            self.outbox.append(message)


def build_transport(config):
    backend = (config.get("MAIL_BACKEND") or "console").lower()

    if backend == "smtp":
        return SMTPTransport(
            host=config["MAIL_SERVER"],
            port=int(config.get("MAIL_PORT") or 587),
            username=config.get("MAIL_USERNAME") or None,
            password=config.get("MAIL_PASSWORD") or None,
            use_tls=bool(config.get("MAIL_USE_TLS", True)),
        )
    if backend == "memory":
        return MemoryTransport()
    if backend == "console":
        return ConsoleTransport()

    raise ValueError(f"Unknown MAIL_BACKEND {backend!r} (expected smtp, console or memory)")
