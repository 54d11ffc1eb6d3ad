"""Tests for the Celery app, beat schedule and periodic tasks."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from vendorconnect.exceptions import ConfigurationError, EmailNotConfiguredError
from vendorconnect.services.archive import ArchiveResult
from vendorconnect.services.deadline import DeadlineScanResult
from vendorconnect.services.notification_dispatch import DigestResult, ScheduledSendResult
from vendorconnect.services.recurring_task import GeneratedOccurrence, GenerationResult


@pytest.fixture(autouse=True)
def pooled_engine_closed():
    with patch("vendorconnect.db.session.close_db", AsyncMock()) as close_db:
        yield close_db


class TestCeleryAppConfig:
    def test_config_defaults(self):
        from vendorconnect.worker import celery_app

        assert celery_app.main == "vendorconnect"
        assert celery_app.conf.task_serializer == "json"
        assert celery_app.conf.timezone == "UTC"
        assert celery_app.conf.enable_utc is True
        assert celery_app.conf.task_track_started is True
        assert celery_app.conf.worker_prefetch_multiplier == 1

    def test_beat_schedule_targets_registered_tasks(self):
        import vendorconnect.tasks  # noqa: F401
        from vendorconnect.worker import celery_app

        scheduled = {entry["task"] for entry in celery_app.conf.beat_schedule.values()}
        assert scheduled == {
            "vendorconnect.tasks.generate_repeating_tasks",
            "vendorconnect.tasks.check_task_deadlines",
            "vendorconnect.tasks.auto_archive_tasks",
            "vendorconnect.tasks.send_scheduled_notifications",
            "vendorconnect.tasks.send_notification_emails",
            "vendorconnect.tasks.calculate_project_baselines",
        }
        for name in scheduled:
            assert name in celery_app.tasks


class TestPeriodicTasks:
    def test_generate_repeating_tasks(self, pooled_engine_closed):
        from vendorconnect.tasks import generate_repeating_tasks

        result = GenerationResult(skipped=2, deactivated=1)
        result.created.append(
            GeneratedOccurrence(
                task_id=uuid4(),
                series_id=uuid4(),
                title="Report 8 Jan 2024",
                start_date=datetime(2024, 1, 8, tzinfo=timezone.utc),
            )
        )
        with patch("vendorconnect.tasks.jobs.generate_repeating_tasks", AsyncMock(return_value=result)):
            status = generate_repeating_tasks()

        assert status == {
            "status": "success",
            "tasks_created": 1,
            "skipped": 2,
            "deactivated": 1,
            "failed": 0,
        }
        pooled_engine_closed.assert_awaited_once()

    def test_check_task_deadlines(self):
        from vendorconnect.tasks import check_task_deadlines

        result = DeadlineScanResult(due_soon=2, overdue=1, notifications_created=4)
        with patch("vendorconnect.tasks.jobs.check_task_deadlines", AsyncMock(return_value=result)):
            status = check_task_deadlines()

        assert status["status"] == "success"
        assert status["notifications_created"] == 4

    def test_auto_archive_disabled(self):
        from vendorconnect.tasks import auto_archive_tasks

        with patch("vendorconnect.tasks.jobs.auto_archive_tasks", AsyncMock(return_value=ArchiveResult(enabled=False))):
            assert auto_archive_tasks() == {"status": "disabled"}

    def test_auto_archive_with_errors(self):
        from vendorconnect.tasks import auto_archive_tasks

        result = ArchiveResult(found=2, archived=1, errors=["Failed to archive task x: locked"])
        with patch("vendorconnect.tasks.jobs.auto_archive_tasks", AsyncMock(return_value=result)):
            status = auto_archive_tasks()

        assert status["status"] == "error"
        assert status["archived"] == 1

    def test_auto_archive_configuration_error(self):
        from vendorconnect.tasks import auto_archive_tasks

        error = ConfigurationError("Archived status not found")
        with patch("vendorconnect.tasks.jobs.auto_archive_tasks", AsyncMock(side_effect=error)):
            status = auto_archive_tasks()

        assert status == {
            "status": "error",
            "error": "Archived status not found",
            "code": "CONFIGURATION_ERROR",
        }

    def test_send_scheduled_notifications(self):
        from vendorconnect.tasks import send_scheduled_notifications

        result = ScheduledSendResult(sent=3)
        with patch("vendorconnect.tasks.jobs.send_scheduled_notifications", AsyncMock(return_value=result)):
            assert send_scheduled_notifications() == {"status": "success", "sent": 3, "failed": 0}

    def test_send_notification_emails_unconfigured(self):
        from vendorconnect.tasks import send_notification_emails

        with patch(
            "vendorconnect.tasks.jobs.send_notification_emails",
            AsyncMock(side_effect=EmailNotConfiguredError()),
        ):
            status = send_notification_emails()

        assert status["status"] == "error"
        assert status["code"] == "CONFIGURATION_ERROR"

    def test_send_notification_emails(self):
        from vendorconnect.tasks import send_notification_emails

        result = DigestResult(emails_sent=2, notifications_sent=5, failed=1)
        with patch("vendorconnect.tasks.jobs.send_notification_emails", AsyncMock(return_value=result)):
            status = send_notification_emails()

        assert status == {
            "status": "success",
            "emails_sent": 2,
            "notifications_sent": 5,
            "failed": 1,
        }

    def test_calculate_project_baselines_unexpected_error(self):
        from vendorconnect.tasks import calculate_project_baselines

        with patch(
            "vendorconnect.tasks.jobs.calculate_project_baselines",
            AsyncMock(side_effect=RuntimeError("connection reset")),
        ):
            status = calculate_project_baselines()

        assert status == {"status": "error", "error": "connection reset"}
