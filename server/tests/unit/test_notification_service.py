"""Unit tests for email notifications."""

import smtplib

import pytest

from hotel_booking.core.config import Settings
from hotel_booking.services import notification_service
from hotel_booking.services.notification_service import (
    LoggingNotifier,
    Notifier,
    SmtpNotifier,
    build_notifier,
    notify,
)


class RecordingSMTP:
    """Stands in for an SMTP connection and remembers what was called."""

    instances: list["RecordingSMTP"] = []

    def __init__(self, host, port, timeout=None, fail_starttls=False, fail_quit=False):
        self.host = host
        self.port = port
        self.fail_starttls = fail_starttls
        self.fail_quit = fail_quit
        self.calls: list[str] = []
        RecordingSMTP.instances.append(self)

    def starttls(self):
        self.calls.append("starttls")
        if self.fail_starttls:
            raise smtplib.SMTPNotSupportedError("STARTTLS extension not supported by server.")

    def login(self, username, password):
        self.calls.append("login")

    def sendmail(self, sender, recipients, message):
        self.calls.append("sendmail")

    def quit(self):
        self.calls.append("quit")
        if self.fail_quit:
            raise smtplib.SMTPServerDisconnected("Connection unexpectedly closed")

    def close(self):
        self.calls.append("close")


@pytest.fixture
def smtp_factory(monkeypatch):
    RecordingSMTP.instances = []

    def install(**options):
        monkeypatch.setattr(
            notification_service.smtplib,
            "SMTP",
            lambda host, port, timeout=None: RecordingSMTP(host, port, timeout, **options),
        )
        return RecordingSMTP.instances

    return install


def test_notifier_is_abstract():
    with pytest.raises(TypeError):
        Notifier()


def test_build_notifier_without_host_only_logs():
    assert isinstance(build_notifier(Settings(smtp_host=None)), LoggingNotifier)


@pytest.mark.asyncio
async def test_smtp_notifier_sends(smtp_factory):
    connections = smtp_factory()
    notifier = SmtpNotifier("mail.example.com", 587, "front-desk@example.com", username="desk", password="secret")

    assert await notifier.send_email("guest@example.com", "Reservation confirmed", "See you soon") is True

    assert connections[0].calls == ["starttls", "login", "sendmail", "quit"]


@pytest.mark.asyncio
async def test_failed_starttls_still_closes_connection(smtp_factory):
    """A handshake failure must not leave the socket open."""
    connections = smtp_factory(fail_starttls=True, fail_quit=True)
    notifier = SmtpNotifier("mail.example.com", 587, "front-desk@example.com")

    with pytest.raises(smtplib.SMTPNotSupportedError):
        await notifier.send_email("guest@example.com", "Reservation confirmed", "See you soon")

    assert connections[0].calls == ["starttls", "quit", "close"]


@pytest.mark.asyncio
async def test_notify_reports_failure_without_raising(smtp_factory):
    smtp_factory(fail_starttls=True)
    notifier = SmtpNotifier("mail.example.com", 587, "front-desk@example.com")

    sent = await notify(notifier, "reservation_confirmation", "guest@example.com", "Subject", "Body")

    assert sent is False


@pytest.mark.asyncio
async def test_notify_skips_missing_recipient():
    assert await notify(LoggingNotifier(), "reservation_cancellation", None, "Subject", "Body") is False
