"""Celery periodic tasks.

Each task runs one job runner to completion and reports a status dict; job
failures are logged and returned, never retried.
"""

import asyncio

from vendorconnect import jobs
from vendorconnect.exceptions import ConfigurationError
from vendorconnect.logging_setup import job_context
from vendorconnect.worker import celery_app


async def _run_and_close(runner):
    from vendorconnect.db.session import close_db

    try:
        return await runner()
    finally:
        # Pooled connections belong to this event loop; the next task gets a new one
        await close_db()


def _run(job_name: str, runner) -> tuple[object | None, dict | None]:
    """Run an async job; returns (result, None) or (None, error status dict)."""
    try:
        with job_context(job_name):
            return asyncio.run(_run_and_close(runner)), None
    except ConfigurationError as e:
        return None, {"status": "error", "error": e.message, "code": e.code}
    except Exception as e:
        return None, {"status": "error", "error": str(e)}


@celery_app.task(bind=True, name="vendorconnect.tasks.generate_repeating_tasks")
def generate_repeating_tasks(self) -> dict:
    """Create the next occurrence of every due repeating task series."""
    result, error = _run("tasks:generate-repeating", jobs.generate_repeating_tasks)
    if error:
        return error
    return {
        "status": "success",
        "tasks_created": len(result.created),
        "skipped": result.skipped,
        "deactivated": result.deactivated,
        "failed": result.failed,
    }


@celery_app.task(bind=True, name="vendorconnect.tasks.check_task_deadlines")
def check_task_deadlines(self) -> dict:
    result, error = _run("tasks:check-deadlines", jobs.check_task_deadlines)
    if error:
        return error
    return {
        "status": "success",
        "due_soon": result.due_soon,
        "overdue": result.overdue,
        "notifications_created": result.notifications_created,
        "failed": result.failed,
    }


@celery_app.task(bind=True, name="vendorconnect.tasks.auto_archive_tasks")
def auto_archive_tasks(self) -> dict:
    result, error = _run("tasks:auto-archive", jobs.auto_archive_tasks)
    if error:
        return error
    if not result.enabled:
        return {"status": "disabled"}
    return {
        "status": "success" if result.ok else "error",
        "archived": result.archived,
        "errors": result.errors,
    }


@celery_app.task(bind=True, name="vendorconnect.tasks.send_scheduled_notifications")
def send_scheduled_notifications(self) -> dict:
    result, error = _run("notifications:send-scheduled", jobs.send_scheduled_notifications)
    if error:
        return error
    return {"status": "success", "sent": result.sent, "failed": result.failed}


@celery_app.task(bind=True, name="vendorconnect.tasks.send_notification_emails")
def send_notification_emails(self) -> dict:
    """Email unread-notification digests."""
    result, error = _run("notifications:send-emails", jobs.send_notification_emails)
    if error:
        return error
    return {
        "status": "success",
        "emails_sent": result.emails_sent,
        "notifications_sent": result.notifications_sent,
        "failed": result.failed,
    }


@celery_app.task(bind=True, name="vendorconnect.tasks.calculate_project_baselines")
def calculate_project_baselines(self) -> dict:
    baselines, error = _run(
        "metrics:calculate-project-baselines", jobs.calculate_project_baselines
    )
    if error:
        return error
    return {"status": "success", "metrics_stored": len(baselines)}
