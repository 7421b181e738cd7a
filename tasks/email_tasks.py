import smtplib

from core.celery import celery_app
from core.config import settings
from core.logging_config import get_logger

logger = get_logger(__name__)


@celery_app.task(bind=True, max_retries=3)
def send_email_task(self, to_email: str, subject: str, body: str):
    """
    Send email asynchronously with Celery.
    Retries up to 3 times on failure.
    """
    # Imported here to avoid a cycle: services.email queues this task.
    from services.email import deliver_smtp

    if settings.TESTING or not settings.SMTP_PASSWORD:
        logger.info("email_task_skipped", to=to_email, subject=subject)
        return {"status": "skipped", "to": to_email}

    try:
        deliver_smtp(to_email, subject, body)
        return {"status": "sent", "to": to_email, "subject": subject}
    except (smtplib.SMTPException, OSError) as exc:
        logger.warning("email_task_failed", to=to_email, retries=self.request.retries, error=str(exc))
        # Retry with exponential backoff
        countdown = min(2 ** self.request.retries, 60)  # Max 60 seconds
        raise self.retry(exc=exc, countdown=countdown)
