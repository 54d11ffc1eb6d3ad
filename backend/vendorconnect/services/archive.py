"""Auto-archive of completed tasks."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Sequence
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vendorconnect.config import Settings, get_settings
from vendorconnect.exceptions import ConfigurationError
from vendorconnect.models.project import StatusKind, Task
from vendorconnect.services.setting import SettingService
from vendorconnect.services.status import resolve_status

logger = structlog.get_logger()

AUTO_ARCHIVE_ENABLED = "auto_archive_enabled"
AUTO_ARCHIVE_DAYS = "auto_archive_days"


@dataclass
class ArchiveResult:
    enabled: bool = True
    found: int = 0
    archived: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class AutoArchiveService:
    """Moves completed tasks to the archived status after a configurable delay."""

    def __init__(self, db: AsyncSession, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()
        self.setting_service = SettingService(db)

    async def get_archive_days(self) -> int:
        days = await self.setting_service.get_value(
            AUTO_ARCHIVE_DAYS, default=self.settings.auto_archive_default_days
        )
        try:
            days = int(days)
        except (TypeError, ValueError):
            raise ConfigurationError(f"Invalid auto-archive days setting: {days!r}") from None
        if days <= 0:
            raise ConfigurationError("Invalid auto-archive days setting. Must be greater than 0.")
        return days

    async def run(self, now: datetime | None = None) -> ArchiveResult:
        """Archive completed tasks untouched for ``auto_archive_days``.

        Settings and statuses are checked before any task is touched.

        Raises:
            ConfigurationError: for a non-positive day count or a missing
                completed/archived status.
        """
        now = now or datetime.now(timezone.utc)

        if not await self.setting_service.is_enabled(AUTO_ARCHIVE_ENABLED):
            logger.info("auto_archive_disabled")
            return ArchiveResult(enabled=False)

        days = await self.get_archive_days()
        completed = await resolve_status(self.db, StatusKind.COMPLETED)
        archived = await resolve_status(self.db, StatusKind.ARCHIVED)
        completed_id, archived_id = completed.id, archived.id

        cutoff = now - timedelta(days=days)
        task_ids: Sequence[UUID] = (
            await self.db.execute(
                select(Task.id).where(
                    Task.status_id == completed_id,
                    Task.updated_at <= cutoff,
                )
            )
        ).scalars().all()

        result = ArchiveResult(found=len(task_ids))
        for task_id in task_ids:
            try:
                task = await self.db.get(Task, task_id)
                if task is None:
                    continue
                task.status_id = archived_id
                await self.db.commit()
                result.archived += 1
                logger.info("task_auto_archived", task_id=str(task_id))
            except Exception as e:
                await self.db.rollback()
                result.errors.append(f"Failed to archive task {task_id}: {e}")
                logger.error("task_auto_archive_failed", task_id=str(task_id), error=str(e))

        logger.info(
            "auto_archive_completed",
            cutoff=cutoff.isoformat(),
            found=result.found,
            archived=result.archived,
            errors=len(result.errors),
        )
        return result
