"""Deadline scanner: due-soon and overdue notifications for open tasks."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Sequence
from uuid import UUID

import structlog
from sqlalchemy import exists, not_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from vendorconnect.config import Settings, get_settings
from vendorconnect.models.activity import Notification, NotificationType
from vendorconnect.models.project import TERMINAL_STATUS_KINDS, Status, Task
from vendorconnect.services.notification import NotificationService

logger = structlog.get_logger()


@dataclass
class DeadlineScanResult:
    """Tasks notified per category, and tasks that failed."""

    due_soon: int = 0
    overdue: int = 0
    notifications_created: int = 0
    failed: int = 0

    @property
    def processed(self) -> int:
        return self.due_soon + self.overdue


def _notified_since(notification_type: NotificationType, since: datetime):
    """Correlated EXISTS: the task already has a notification of this type since ``since``."""
    return exists().where(
        Notification.target_type == "task",
        Notification.target_id == Task.id,
        Notification.notification_type == notification_type.value,
        Notification.created_at >= since,
    )


def _open_tasks():
    """Task IDs whose status is missing or not terminal."""
    return (
        select(Task.id)
        .outerjoin(Status, Task.status_id == Status.id)
        .where(
            Task.end_date.is_not(None),
            or_(Status.id.is_(None), Status.kind.not_in(sorted(TERMINAL_STATUS_KINDS))),
        )
    )


class TaskDeadlineService:
    """Creates deadline notifications, at most once per dedupe window per task."""

    def __init__(
        self,
        db: AsyncSession,
        notifications: NotificationService | None = None,
        settings: Settings | None = None,
    ):
        self.db = db
        self.notifications = notifications or NotificationService(db)
        self.settings = settings or get_settings()

    async def get_due_soon_ids(self, now: datetime) -> Sequence[UUID]:
        horizon = now + timedelta(hours=self.settings.deadline_due_soon_hours)
        since = now - timedelta(hours=self.settings.deadline_due_soon_dedupe_hours)
        result = await self.db.execute(
            _open_tasks()
            .where(
                Task.end_date > now,
                Task.end_date <= horizon,
                not_(_notified_since(NotificationType.TASK_DUE_SOON, since)),
            )
            .order_by(Task.end_date)
        )
        return result.scalars().all()

    async def get_overdue_ids(self, now: datetime) -> Sequence[UUID]:
        since = now - timedelta(hours=self.settings.deadline_overdue_dedupe_hours)
        result = await self.db.execute(
            _open_tasks()
            .where(
                Task.end_date < now,
                not_(_notified_since(NotificationType.TASK_OVERDUE, since)),
            )
            .order_by(Task.end_date)
        )
        return result.scalars().all()

    async def _load(self, task_id: UUID) -> Task | None:
        result = await self.db.execute(
            select(Task)
            .where(Task.id == task_id)
            .execution_options(populate_existing=True)
        )
        return result.unique().scalar_one_or_none()

    async def scan(self, now: datetime | None = None) -> DeadlineScanResult:
        """Notify recipients of every due-soon and overdue open task.

        Each task is handled on its own; a failure is logged and counted and
        the scan moves on.
        """
        now = now or datetime.now(timezone.utc)
        result = DeadlineScanResult()

        for task_id in await self.get_due_soon_ids(now):
            try:
                task = await self._load(task_id)
                if task is None:
                    continue
                created = await self.notifications.task_due_soon(task, now=now)
                result.due_soon += 1
                result.notifications_created += len(created)
            except Exception as e:
                await self.db.rollback()
                result.failed += 1
                logger.error(
                    "deadline_notification_failed",
                    task_id=str(task_id),
                    notification_type=NotificationType.TASK_DUE_SOON.value,
                    error=str(e),
                )

        for task_id in await self.get_overdue_ids(now):
            try:
                task = await self._load(task_id)
                if task is None:
                    continue
                created = await self.notifications.task_overdue(task, now=now)
                result.overdue += 1
                result.notifications_created += len(created)
            except Exception as e:
                await self.db.rollback()
                result.failed += 1
                logger.error(
                    "deadline_notification_failed",
                    task_id=str(task_id),
                    notification_type=NotificationType.TASK_OVERDUE.value,
                    error=str(e),
                )

        logger.info(
            "deadline_scan_completed",
            due_soon=result.due_soon,
            overdue=result.overdue,
            notifications_created=result.notifications_created,
            failed=result.failed,
        )
        return result
