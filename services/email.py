import os
import smtplib
from email.message import EmailMessage
from typing import Dict, Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

from core.config import settings
from core.logging_config import get_logger
from models.payment import Payment
from tasks.email_tasks import send_email_task

logger = get_logger(__name__)

# Jinja2 environment for email templates
_templates_env = Environment(
    loader=FileSystemLoader(searchpath=os.path.join(os.path.dirname(os.path.dirname(__file__)), "templates")),
    autoescape=select_autoescape(["html", "xml"]),
)


def send_email(to_email: str, subject: str, body: str) -> None:
    """
    Queue an email on Celery, falling back to a direct SMTP send when the
    broker is unreachable. Never raises into the caller.
    """
    try:
        send_email_task.delay(to_email, subject, body)
        logger.info("email_queued", to=to_email, subject=subject)
        return
    except Exception as exc:
        logger.warning("email_queue_unavailable", error=str(exc))

    _send_email_direct(to_email, subject, body)


def render_template(template_path: str, context: Dict[str, Any]) -> str:
    """Render a text template from templates/ directory with provided context."""
    template = _templates_env.get_template(template_path)
    return template.render(**context)


def send_templated_email(to_email: str, subject: str, template_path: str, context: Dict[str, Any]) -> None:
    """Render a template and send email via existing send_email path."""
    body = render_template(template_path, context)
    send_email(to_email, subject, body)


def deliver_smtp(to_email: str, subject: str, body: str) -> None:
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = settings.SMTP_FROM or settings.SMTP_USERNAME
    msg["To"] = to_email
    msg.set_content(body)

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
        server.starttls()
        if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
            server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
        server.send_message(msg)


def _send_email_direct(to_email: str, subject: str, body: str) -> None:
    """Direct email sending fallback"""
    if not settings.SMTP_PASSWORD:
        logger.info("email_skipped_no_smtp", to=to_email, subject=subject)
        return

    try:
        deliver_smtp(to_email, subject, body)
        logger.info("email_sent", to=to_email, subject=subject)
    except (smtplib.SMTPException, OSError) as exc:
        logger.error("email_send_failed", to=to_email, subject=subject, error=str(exc))


def notify_payment_success(payment: Payment) -> None:
    """Post-payment hook: confirmation email to the order owner."""
    owner = payment.owner
    if not owner or not owner.email:
        return
    send_templated_email(
        owner.email,
        "Payment received",
        "emails/payment_success.txt",
        {
            "first_name": owner.first_name,
            "plan": payment.plan.value,
            "description": payment.description,
            "amount": f"{payment.amount_minor_units / 100:.2f}",
            "currency": payment.currency,
            "receipt": payment.receipt,
        },
    )
