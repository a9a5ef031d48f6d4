import atexit
import logging
from email.message import EmailMessage

import pytest

from slotbooker import create_app
from slotbooker.notifications.transports import MemoryTransport, build_transport
from slotbooker.notifications.worker import FAILED, QUEUED, SENT, NotificationQueue
from slotbooker.sqlite_db import init_db, query_db

BOOKING = {
    "user_id": 7,
    "name": "Maria",
    "phone": "6900000000",
    "email": "maria@example.com",
    "appointment_date": "2999-06-01",
    "appointment_time": "10:00",
}


class FlakyTransport:
    """Fails the first `failures` sends, then delivers."""

    def __init__(self, failures):
        self.failures = failures
        self.calls = 0
        self.outbox = []

    def send(self, message):
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionRefusedError("smtp down")
        self.outbox.append(message)


def _message(to="a@x.com"):
    msg = EmailMessage()
    msg["To"] = to
    msg["Subject"] = "hi"
    msg.set_content("hello")
    return msg


@pytest.fixture()
def app(tmp_path):
    app = create_app(
        {
            "TESTING": True,
            "DATABASE": str(tmp_path / "test.db"),
            "IMAGE_DIR": str(tmp_path / "img"),
            "MAIL_BACKEND": "memory",
            "MAIL_SENDER": "shop@example.com",
            "ADMIN_EMAIL": "admin@example.com",
            "CANCEL_URL": "https://shop.example.com/cancel.html",
            "SWEEPER_ENABLED": False,
            "RATELIMIT_ENABLED": False,
        }
    )
    with app.app_context():
        init_db()
    yield app
    app.extensions["notifications"].stop()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def notifier(app):
    return app.extensions["notifications"]


def test_booking_sends_confirmation_and_admin_alert(client, notifier):
    r = client.post("/appointments", json=BOOKING)
    assert r.status_code == 200
    assert notifier.wait_idle(5)

    confirmation, alert = sorted(notifier.transport.outbox, key=lambda m: m["To"] != "maria@example.com")

    assert confirmation["To"] == "maria@example.com"
    assert confirmation["From"] == "shop@example.com"
    text = confirmation.get_body(("plain",)).get_content()
    assert "2999-06-01" in text
    assert "10:00:00" in text
    assert "https://shop.example.com/cancel.html?email=maria%40example.com" in text
    assert confirmation.get_body(("html",)) is not None

    assert alert["To"] == "admin@example.com"
    text = alert.get_body(("plain",)).get_content()
    for value in ("Maria", "6900000000", "2999-06-01", "10:00:00", "maria@example.com"):
        assert value in text


def test_no_admin_alert_without_admin_email(client, app, notifier, caplog):
    caplog.set_level(logging.WARNING)
    app.config["ADMIN_EMAIL"] = ""

    client.post("/appointments", json=BOOKING)
    assert notifier.wait_idle(5)

    assert [m["To"] for m in notifier.transport.outbox] == ["maria@example.com"]
    assert "ADMIN_EMAIL is not set" in caplog.text


def test_send_cancel_link(client, notifier):
    r = client.post("/send-cancel-link", json={"email": "maria@example.com"})
    assert r.status_code == 200
    job_id = r.get_json()["job_id"]
    assert notifier.wait_idle(5)

    assert notifier.status(job_id)["status"] == SENT
    [msg] = notifier.transport.outbox
    assert msg["To"] == "maria@example.com"
    assert "cancel.html?email=maria%40example.com" in msg.get_body(("plain",)).get_content()


def test_send_cancel_link_requires_email(client, notifier):
    r = client.post("/send-cancel-link", json={"email": " "})
    assert r.status_code == 400
    assert notifier.transport.outbox == []


def test_mail_failure_does_not_fail_booking(client, app, notifier, caplog):
    caplog.set_level(logging.INFO)
    notifier.transport = FlakyTransport(failures=100)
    notifier.backoff = 0.001

    r = client.post("/appointments", json=BOOKING)
    assert r.status_code == 200
    assert notifier.wait_idle(5)

    with app.app_context():
        assert query_db("SELECT COUNT(*) AS c FROM appointments", one=True)["c"] == 1
    assert "Giving up on confirmation email" in caplog.text


def test_queue_retries_with_backoff_until_sent():
    transport = FlakyTransport(failures=2)
    q = NotificationQueue(transport, max_attempts=3, backoff=0.001)
    q.start()
    try:
        job_id = q.enqueue(_message(), "test")
        assert q.wait_idle(5)
    finally:
        q.stop()

    status = q.status(job_id)
    assert status["status"] == SENT
    assert status["attempts"] == 3
    assert "ConnectionRefusedError" in status["last_error"]
    assert len(transport.outbox) == 1


def test_queue_gives_up_after_max_attempts(caplog):
    caplog.set_level(logging.ERROR)
    transport = FlakyTransport(failures=10)
    q = NotificationQueue(transport, max_attempts=2, backoff=0.001)
    q.start()
    try:
        job_id = q.enqueue(_message(), "test")
        assert q.wait_idle(5)
    finally:
        q.stop()

    status = q.status(job_id)
    assert status["status"] == FAILED
    assert status["attempts"] == 2
    assert transport.calls == 2
    assert "Giving up" in caplog.text


def test_jobs_stay_queued_until_worker_runs():
    q = NotificationQueue(MemoryTransport())
    job_id = q.enqueue(_message(), "test")

    assert q.status(job_id)["status"] == QUEUED
    assert q.wait_idle(0.05) is False

    q.start()
    try:
        assert q.wait_idle(5)
    finally:
        q.stop()
    assert q.status(job_id)["status"] == SENT
    assert q.status("missing") is None


def test_finished_jobs_are_pruned():
    q = NotificationQueue(MemoryTransport(), max_history=2)
    q.start()
    try:
        ids = [q.enqueue(_message(), "test") for _ in range(2)]
        assert q.wait_idle(5)
        ids.append(q.enqueue(_message(), "test"))
        assert q.wait_idle(5)
    finally:
        q.stop()

    assert q.status(ids[0]) is None
    assert q.status(ids[2])["status"] == SENT


def test_build_transport():
    assert isinstance(build_transport({"MAIL_BACKEND": "memory"}), MemoryTransport)
    smtp = build_transport(
        {"MAIL_BACKEND": "smtp", "MAIL_SERVER": "mail.example.com", "MAIL_PORT": 2525, "MAIL_USERNAME": "u"}
    )
    assert (smtp.host, smtp.port, smtp.username) == ("mail.example.com", 2525, "u")
    with pytest.raises(ValueError):
        build_transport({"MAIL_BACKEND": "pigeon"})


def test_cancel_link_rejects_header_injection(client, notifier):
    r = client.post("/send-cancel-link", json={"email": "a@x.com\r\nBcc: b@x.com"})
    assert r.status_code == 400
    assert notifier.wait_idle(5)
    assert notifier.transport.outbox == []


def test_unbuildable_email_is_logged_not_raised(client, app, notifier, monkeypatch, caplog):
    caplog.set_level(logging.ERROR)

    def broken(appointment):
        raise ValueError("Header values may not contain linefeed or carriage return characters")

    monkeypatch.setattr("slotbooker.notifications.confirmation_message", broken)

    r = client.post("/appointments", json=BOOKING)
    assert r.status_code == 200
    assert notifier.wait_idle(5)

    with app.app_context():
        assert query_db("SELECT COUNT(*) AS c FROM appointments", one=True)["c"] == 1
    assert "Could not build confirmation email" in caplog.text
    assert [m["To"] for m in notifier.transport.outbox] == ["admin@example.com"]


def test_shutdown_fails_jobs_that_never_left_the_queue(caplog):
    caplog.set_level(logging.ERROR)
    q = NotificationQueue(MemoryTransport())
    job_id = q.enqueue(_message(), "test")

    q.shutdown(timeout=0.05)

    status = q.status(job_id)
    assert status["status"] == FAILED
    assert status["last_error"] == "not sent before shutdown"
    assert "Giving up on test email" in caplog.text


def test_shutdown_drains_running_queue():
    q = NotificationQueue(MemoryTransport())
    q.start()
    ids = [q.enqueue(_message(), "test") for _ in range(3)]

    q.shutdown(timeout=5)

    assert [q.status(i)["status"] for i in ids] == [SENT] * 3
    assert len(q.transport.outbox) == 3


def test_create_app_registers_exit_hooks(tmp_path, monkeypatch):
    hooks = []
    monkeypatch.setattr(atexit, "register", lambda fn, *args: hooks.append((fn, args)))

    app = create_app(
        {
            "TESTING": True,
            "DATABASE": str(tmp_path / "hooks.db"),
            "IMAGE_DIR": str(tmp_path / "img"),
            "MAIL_BACKEND": "memory",
            "MAIL_SHUTDOWN_TIMEOUT": 1,
            "SWEEPER_ENABLED": True,
            "SWEEP_INTERVAL_SECONDS": 3600,
        }
    )
    try:
        notifier = app.extensions["notifications"]
        sweeper = app.extensions["sweeper"]
        assert (notifier.shutdown, (1.0,)) in hooks
        assert (sweeper.stop, ()) in hooks
    finally:
        for fn, args in hooks:
            fn(*args)
    assert not sweeper.running
