from celery import Celery
from core.config import settings

NOTIFICATIONS_QUEUE = "payment_notifications"

celery_app = Celery(
    "subscription_payments",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["tasks.email_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=5 * 60,
    task_soft_time_limit=4 * 60,
    task_routes={"tasks.email_tasks.*": {"queue": NOTIFICATIONS_QUEUE}},
    task_default_queue=NOTIFICATIONS_QUEUE,
    result_expires=24 * 60 * 60,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
    # Fail fast when the broker is down; services.email falls back to SMTP
    task_publish_retry=False,
    broker_connection_timeout=2,
)
