"""Outbound invoice emails.

Delivery is a side effect of lifecycle transitions, never a precondition:
callers commit the state change first and treat a DependencyError from here as
a separate, reportable failure.
"""

import logging
import smtplib
from decimal import Decimal
from email.message import EmailMessage
from typing import Callable

from backend.app.core.enums import ReminderTone
from backend.app.core.errors import DependencyError
from backend.app.core.settings import get_settings
from backend.app.models.invoice import Invoice
from backend.app.services.documents import format_money

logger = logging.getLogger(__name__)

REMINDER_TEMPLATES = {
    ReminderTone.FRIENDLY: (
        "Friendly reminder: Invoice {number} is due soon",
        "Just a quick reminder that invoice {number} for {total} is due {due}.",
    ),
    ReminderTone.FIRM: (
        "Payment overdue: Invoice {number}",
        "Invoice {number} for {total} is now overdue. Please arrange payment at your earliest convenience.",
    ),
    ReminderTone.FINAL: (
        "Final notice: Invoice {number}",
        "This is a final reminder that invoice {number} for {total} remains unpaid. "
        "Please arrange payment immediately to avoid any disruption.",
    ),
}


def invoice_link(invoice: Invoice) -> str:
    return f"{get_settings().app_url.rstrip('/')}/invoice/{invoice.share_token}"


def _message(invoice: Invoice, sender_name: str, subject: str, body: str) -> EmailMessage:
    message = EmailMessage()
    message["From"] = f"{sender_name} <{get_settings().mail_from}>"
    message["To"] = invoice.client.email
    message["Subject"] = subject
    message.set_content(body)
    return message


def build_invoice_message(invoice: Invoice, sender_name: str) -> EmailMessage:
    lines = [
        f"Hi {invoice.client.name},",
        "",
        f"{sender_name} has sent you invoice {invoice.invoice_number}.",
        "",
        f"Amount due: {format_money(invoice.balance_due, invoice.currency)}",
        f"Issue date: {invoice.issue_date.isoformat()}",
    ]
    if invoice.due_date:
        lines.append(f"Due date: {invoice.due_date.isoformat()}")
    lines += ["", f"View and pay online: {invoice_link(invoice)}", "", "Best regards,", sender_name]
    return _message(invoice, sender_name, f"Invoice {invoice.invoice_number} from {sender_name}", "\n".join(lines))


def build_reminder_message(invoice: Invoice, sender_name: str, tone: ReminderTone) -> EmailMessage:
    subject_template, text_template = REMINDER_TEMPLATES[tone]
    due = f"on {invoice.due_date.isoformat()}" if invoice.due_date else "soon"
    total = format_money(invoice.total, invoice.currency)
    lines = [
        f"Hi {invoice.client.name},",
        "",
        text_template.format(number=invoice.invoice_number, total=total, due=due),
        "",
        f"Amount due: {format_money(invoice.balance_due, invoice.currency)}",
        f"Pay online: {invoice_link(invoice)}",
        "",
        "If you've already paid, please disregard this reminder.",
        "",
        "Best regards,",
        sender_name,
    ]
    return _message(invoice, sender_name, subject_template.format(number=invoice.invoice_number), "\n".join(lines))


def build_payment_confirmation_message(invoice: Invoice, sender_name: str, amount: Decimal) -> EmailMessage:
    lines = [
        f"Hi {invoice.client.name},",
        "",
        f"We received your payment of {format_money(amount, invoice.currency)} "
        f"for invoice {invoice.invoice_number}. Thank you!",
        "",
        f"Remaining balance: {format_money(invoice.balance_due, invoice.currency)}",
        "",
        "Best regards,",
        sender_name,
    ]
    return _message(
        invoice, sender_name, f"Payment received for invoice {invoice.invoice_number}", "\n".join(lines)
    )


class InvoiceNotifier:
    """Builds invoice emails and hands them to ``deliver``."""

    def send_invoice(self, invoice: Invoice, sender_name: str) -> None:
        self.deliver(build_invoice_message(invoice, sender_name))

    def send_reminder(self, invoice: Invoice, sender_name: str, tone: ReminderTone = ReminderTone.FRIENDLY) -> None:
        self.deliver(build_reminder_message(invoice, sender_name, tone))

    def send_payment_confirmation(self, invoice: Invoice, sender_name: str, amount: Decimal) -> None:
        self.deliver(build_payment_confirmation_message(invoice, sender_name, amount))

    def deliver(self, message: EmailMessage) -> None:
        raise NotImplementedError


class SmtpNotifier(InvoiceNotifier):
    def __init__(self, host: str, port: int, username: str = "", password: str = "", timeout: float = 10.0):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.timeout = timeout

    def deliver(self, message: EmailMessage) -> None:
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.starttls()
                if self.username:
                    server.login(self.username, self.password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise DependencyError("Email delivery failed") from exc
        logger.info("Sent email %r to %s", message["Subject"], message["To"])


class LogNotifier(InvoiceNotifier):
    """Development notifier: logs messages instead of sending them."""

    def deliver(self, message: EmailMessage) -> None:
        logger.info("Email (not sent, SMTP not configured) %r to %s", message["Subject"], message["To"])


def get_notifier() -> InvoiceNotifier:
    settings = get_settings()
    if not settings.smtp_host:
        return LogNotifier()
    return SmtpNotifier(settings.smtp_host, settings.smtp_port, settings.smtp_username, settings.smtp_password)


def notify_best_effort(send: Callable[[], None], invoice: Invoice) -> dict:
    """Run ``send`` after a committed transition and report the outcome instead of raising."""
    try:
        send()
    except DependencyError as exc:
        logger.warning("Notification for invoice %s failed: %s", invoice.invoice_number, exc.message)
        return {"delivered": False, "error": exc.message}
    return {"delivered": True, "error": None}
