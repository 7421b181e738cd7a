#!/usr/bin/env python3
"""
Start a Celery worker for payment confirmation emails.

    python celery_worker.py

Only the notification queue is consumed; web processes fall back to
sending inline when no worker (or no broker) is reachable.
"""
from dotenv import load_dotenv

load_dotenv()

if __name__ == "__main__":
    from core.celery import NOTIFICATIONS_QUEUE, celery_app

    celery_app.start([
        "worker",
        "--loglevel=info",
        "--concurrency=2",
        f"--queues={NOTIFICATIONS_QUEUE}",
        "--hostname=payments@%h",
        "--without-gossip",
        "--without-mingle",
    ])
