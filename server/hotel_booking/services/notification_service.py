"""Best-effort email notifications for reservations and invoices."""

import asyncio
import logging
import smtplib
from abc import ABC, abstractmethod
from contextlib import contextmanager
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from ..core.config import Settings
from ..core.observability import metrics_collector

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Outbound email boundary."""

    @abstractmethod
    async def send_email(self, to: str, subject: str, body: str) -> bool:
        """Deliver one plain-text email; True when it was handed off."""


class LoggingNotifier(Notifier):
    """Notifier used when no SMTP server is configured; it only logs."""

    async def send_email(self, to: str, subject: str, body: str) -> bool:
        logger.info("Email not sent, no SMTP host configured", extra={"to": to, "subject": subject})
        return True


class SmtpNotifier(Notifier):
    """SMTP notifier; the blocking smtplib calls run in a worker thread."""

    def __init__(
        self,
        smtp_host: str,
        smtp_port: int,
        sender: str,
        username: str | None = None,
        password: str | None = None,
        use_ssl: bool = False,
        timeout: float = 10.0,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_ssl = use_ssl
        self.timeout = timeout

    @contextmanager
    def _connection(self):
        if self.use_ssl:
            server = smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, timeout=self.timeout)
        else:
            server = smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout)
        try:
            if not self.use_ssl:
                server.starttls()
            if self.username:
                server.login(self.username, self.password or "")
            yield server
        finally:
            try:
                server.quit()
            except (smtplib.SMTPException, OSError) as e:
                logger.warning("Error closing SMTP connection", extra={"error": str(e)})
                server.close()

    def _build_message(self, to: str, subject: str, body: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = self.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.attach(MIMEText(body, "plain"))
        return msg

    def _send(self, to: str, subject: str, body: str) -> None:
        msg = self._build_message(to, subject, body)
        with self._connection() as server:
            server.sendmail(self.sender, [to], msg.as_string())

    async def send_email(self, to: str, subject: str, body: str) -> bool:
        await asyncio.to_thread(self._send, to, subject, body)
        logger.info("Email sent", extra={"to": to, "subject": subject})
        return True


def build_notifier(config: Settings) -> Notifier:
    """SMTP notifier when a host is configured, otherwise a logging one."""
    if not config.smtp_host:
        return LoggingNotifier()
    return SmtpNotifier(
        smtp_host=config.smtp_host,
        smtp_port=config.smtp_port,
        sender=config.mail_from,
        username=config.smtp_username,
        password=config.smtp_password,
        use_ssl=config.smtp_use_ssl,
    )


async def notify(notifier: Notifier, kind: str, to: str | None, subject: str, body: str) -> bool:
    """
    Send one email without ever failing the caller.

    Delivery is attempted once. Failures are logged and counted, and the
    committed business operation that triggered the email is left alone.
    """
    if not to:
        logger.info("Skipping notification without recipient", extra={"kind": kind})
        return False

    try:
        sent = await notifier.send_email(to, subject, body)
    except Exception as e:
        logger.warning(
            "Notification failed",
            extra={"kind": kind, "to": to, "error": str(e)},
            exc_info=True,
        )
        sent = False

    if not sent:
        metrics_collector.record_notification_failure(kind)
    return sent


def reservation_confirmation_body(reservation) -> str:
    lines = [
        f"Your reservation {reservation.reference_number} is confirmed.",
        "",
        f"Check-in:  {reservation.check_in_date.isoformat()}",
        f"Check-out: {reservation.check_out_date.isoformat()}",
        f"Rooms:     {len(reservation.rooms)}",
        f"Total:     {reservation.total_amount}",
    ]
    return "\n".join(lines)


def reservation_cancellation_body(reservation) -> str:
    return (
        f"Your reservation {reservation.reference_number} for "
        f"{reservation.check_in_date.isoformat()} to {reservation.check_out_date.isoformat()} "
        f"has been cancelled."
    )


def invoice_body(invoice) -> str:
    lines = [f"Invoice {invoice.invoice_number}", ""]
    for item in invoice.items:
        lines.append(f"{item.description}: {item.quantity} x {item.unit_price} = {item.total_price}")
    lines.extend([
        "",
        f"Room charges:        {invoice.subtotal_room_charges}",
        f"Consumption charges: {invoice.subtotal_consumption_charges}",
        f"Taxes:               {invoice.taxes_amount}",
        f"Total due:           {invoice.total_amount_due}",
    ])
    return "\n".join(lines)
