"""Scheduled job runners shared by the console commands and the Celery tasks.

Each runner opens its own session, runs one service sweep and returns the
service's result object.
"""

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vendorconnect.models.setting import ProjectMetricsBaseline
from vendorconnect.services.archive import ArchiveResult, AutoArchiveService
from vendorconnect.services.deadline import DeadlineScanResult, TaskDeadlineService
from vendorconnect.services.metrics_baseline import MetricsBaselineService
from vendorconnect.services.notification_dispatch import (
    DigestPreview,
    DigestResult,
    NotificationDispatchService,
    ScheduledSendResult,
)
from vendorconnect.services.recurring_task import GenerationResult, RecurringTaskService

SessionFactory = async_sessionmaker[AsyncSession]


def _factory(session_factory: SessionFactory | None) -> SessionFactory:
    if session_factory is not None:
        return session_factory
    from vendorconnect.db.session import async_session_factory

    return async_session_factory


async def generate_repeating_tasks(
    session_factory: SessionFactory | None = None,
    now: datetime | None = None,
) -> GenerationResult:
    async with _factory(session_factory)() as db:
        return await RecurringTaskService(db).generate_due(now)


async def check_task_deadlines(
    session_factory: SessionFactory | None = None,
    now: datetime | None = None,
) -> DeadlineScanResult:
    async with _factory(session_factory)() as db:
        return await TaskDeadlineService(db).scan(now)


async def auto_archive_tasks(
    session_factory: SessionFactory | None = None,
    now: datetime | None = None,
) -> ArchiveResult:
    async with _factory(session_factory)() as db:
        return await AutoArchiveService(db).run(now)


async def send_scheduled_notifications(
    session_factory: SessionFactory | None = None,
    now: datetime | None = None,
) -> ScheduledSendResult:
    async with _factory(session_factory)() as db:
        return await NotificationDispatchService(db).send_scheduled(now)


async def send_notification_emails(
    session_factory: SessionFactory | None = None,
    now: datetime | None = None,
) -> DigestResult:
    async with _factory(session_factory)() as db:
        return await NotificationDispatchService(db).send_unread_digests(now)


async def preview_notification_emails(
    session_factory: SessionFactory | None = None,
    now: datetime | None = None,
) -> list[DigestPreview]:
    async with _factory(session_factory)() as db:
        return await NotificationDispatchService(db).preview_unread_digests(now)


async def calculate_project_baselines(
    session_factory: SessionFactory | None = None,
    now: datetime | None = None,
) -> list[ProjectMetricsBaseline]:
    async with _factory(session_factory)() as db:
        return await MetricsBaselineService(db).calculate(now)
