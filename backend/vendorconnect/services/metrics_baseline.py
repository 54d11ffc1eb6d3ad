"""Historical project metrics used as comparison baselines."""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timezone
from uuid import UUID

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from vendorconnect.models.project import Project, StatusKind, Task
from vendorconnect.models.setting import ProjectMetricsBaseline
from vendorconnect.services.status import resolve_status

logger = structlog.get_logger()

AVG_DURATION_DAYS = "avg_duration_days"
AVG_TASK_COUNT = "avg_task_count"
AVG_TASK_COMPLETION_VELOCITY = "avg_task_completion_velocity"


def days_between(start: date | None, end: date | None) -> int | None:
    """Whole days from ``start`` to ``end``; None if either is missing or end precedes start."""
    if start is None or end is None or end < start:
        return None
    return (end - start).days


@dataclass
class _Sample:
    total: float = 0.0
    count: int = 0

    def add(self, value: float) -> None:
        self.total += value
        self.count += 1

    @property
    def average(self) -> float:
        return round(self.total / self.count, 2)


class MetricsBaselineService:
    """Recomputes every baseline from completed projects."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _task_counts(self, project_ids: list[UUID]) -> dict[UUID, int]:
        if not project_ids:
            return {}
        result = await self.db.execute(
            select(Task.project_id, func.count(Task.id))
            .where(Task.project_id.in_(project_ids))
            .group_by(Task.project_id)
        )
        return {project_id: count for project_id, count in result.all()}

    async def _task_types(self, project_ids: list[UUID]) -> dict[UUID, set[UUID]]:
        """Task type IDs used by each project."""
        if not project_ids:
            return {}
        result = await self.db.execute(
            select(Task.project_id, Task.task_type_id)
            .where(Task.project_id.in_(project_ids), Task.task_type_id.is_not(None))
            .distinct()
        )
        types: dict[UUID, set[UUID]] = defaultdict(set)
        for project_id, task_type_id in result.all():
            types[project_id].add(task_type_id)
        return types

    async def calculate(self, now: datetime | None = None) -> list[ProjectMetricsBaseline]:
        """Replace all stored baselines with freshly computed ones.

        Raises:
            ConfigurationError: if no completed status exists.
        """
        now = now or datetime.now(timezone.utc)
        completed = await resolve_status(self.db, StatusKind.COMPLETED)

        projects = (
            await self.db.execute(select(Project).where(Project.status_id == completed.id))
        ).unique().scalars().all()
        project_ids = [p.id for p in projects]
        task_counts = await self._task_counts(project_ids)
        task_types = await self._task_types(project_ids)

        overall = _Sample()
        by_client: dict[UUID, _Sample] = defaultdict(_Sample)
        by_task_type: dict[UUID, _Sample] = defaultdict(_Sample)
        task_count = _Sample()
        velocity = _Sample()

        for project in projects:
            count = task_counts.get(project.id, 0)
            if count > 0:
                task_count.add(count)

            days = days_between(project.start_date, project.end_date)
            if days is None:
                continue
            overall.add(days)
            for client in project.clients:
                by_client[client.id].add(days)
            for task_type_id in task_types.get(project.id, ()):
                by_task_type[task_type_id].add(days)
            if days > 0 and count > 0:
                velocity.add(count / days)

        baselines: list[ProjectMetricsBaseline] = []

        def record(name: str, sample: _Sample, **scope) -> None:
            if sample.count == 0:
                return
            baselines.append(
                ProjectMetricsBaseline(
                    metric_name=name,
                    metric_value=sample.average,
                    sample_size=sample.count,
                    task_type_id=scope.get("task_type_id"),
                    client_id=scope.get("client_id"),
                    calculated_at=now,
                )
            )

        record(AVG_DURATION_DAYS, overall)
        for client_id, sample in by_client.items():
            record(AVG_DURATION_DAYS, sample, client_id=client_id)
        record(AVG_TASK_COUNT, task_count)
        record(AVG_TASK_COMPLETION_VELOCITY, velocity)
        for task_type_id, sample in by_task_type.items():
            record(AVG_DURATION_DAYS, sample, task_type_id=task_type_id)

        await self.db.execute(delete(ProjectMetricsBaseline))
        self.db.add_all(baselines)
        await self.db.commit()

        logger.info(
            "project_baselines_calculated",
            projects=len(projects),
            metrics_stored=len(baselines),
        )
        return baselines
