"""Celery worker configuration and periodic schedule."""

from celery import Celery
from celery.schedules import crontab

from vendorconnect.config import get_settings

settings = get_settings()

# Create Celery app
celery_app = Celery(
    "vendorconnect",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes
    task_soft_time_limit=240,  # 4 minutes
    worker_prefetch_multiplier=1,
)

celery_app.conf.beat_schedule = {
    "generate-repeating-tasks-daily": {
        "task": "vendorconnect.tasks.generate_repeating_tasks",
        "schedule": crontab(hour=0, minute=5),
    },
    "check-task-deadlines-hourly": {
        "task": "vendorconnect.tasks.check_task_deadlines",
        "schedule": crontab(minute=0),
    },
    "send-scheduled-notifications": {
        "task": "vendorconnect.tasks.send_scheduled_notifications",
        "schedule": crontab(minute="*/5"),
    },
    "send-notification-emails": {
        "task": "vendorconnect.tasks.send_notification_emails",
        "schedule": crontab(minute="*/5"),
    },
    "auto-archive-tasks-daily": {
        "task": "vendorconnect.tasks.auto_archive_tasks",
        "schedule": crontab(hour=1, minute=0),
    },
    "calculate-project-baselines-nightly": {
        "task": "vendorconnect.tasks.calculate_project_baselines",
        "schedule": crontab(hour=2, minute=0),
    },
}

# Auto-discover tasks from vendorconnect.tasks module
celery_app.autodiscover_tasks(["vendorconnect"])
