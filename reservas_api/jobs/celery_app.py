"""Celery application configuration"""

from celery import Celery
from reservas_api.config import settings

# Create Celery app
celery_app = Celery(
    "reservas_api",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "reservas_api.jobs.tasks",
    ],
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="America/Sao_Paulo",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Beat schedule for periodic tasks
    beat_schedule={
        "finalize-past-reservations": {
            "task": "finalize_past_reservations",
            "schedule": 3600.0,  # Every hour
        },
        "cleanup-webhook-logs": {
            "task": "cleanup_webhook_logs",
            "schedule": 86400.0,  # Daily
        },
    },
)
