from datetime import timedelta

from celery import Celery
from kombu import Queue

from core.logging import configure_logging
from core.settings import SETTINGS

configure_logging(SETTINGS)

app = Celery(
    "fixie",
    broker=SETTINGS.REDIS.CELERY_BROKER_URL,
    backend=SETTINGS.REDIS.CELERY_RESULT_BACKEND,
    include=["workers.tasks"],
)

app.conf.update(
    task_default_queue="default",
    task_queues=(
        Queue("default"),
        Queue("maintenance"),
    ),
    task_routes={
        "workers.tasks.cleanup_unverified_users": {"queue": "maintenance"},
    },
    beat_schedule={
        "cleanup-unverified-users": {
            "task": "workers.tasks.cleanup_unverified_users",
            "schedule": timedelta(hours=SETTINGS.CLEANUP.SCHEDULE_HOURS),
        },
    },
    timezone="UTC",
    # Reliability defaults
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # Global time limits (can be overridden per task)
    task_soft_time_limit=60,  # seconds
    task_time_limit=90,  # seconds
    worker_hijack_root_logger=False,
)
