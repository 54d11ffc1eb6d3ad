"""Recurring task service: schedule evaluation and occurrence generation."""

import calendar
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from typing import ClassVar, Sequence
from uuid import UUID

import structlog
from sqlalchemy import and_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from vendorconnect.exceptions import MaterializationError
from vendorconnect.models.project import RepeatFrequency, Task

logger = structlog.get_logger()


# =========================================================================
# Schedule Evaluation
# =========================================================================

def _add_months(value: datetime, months: int) -> datetime:
    """Shift by calendar months, clamping to the last day of shorter months."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def add_period(anchor: datetime, frequency: RepeatFrequency, count: int) -> datetime:
    """Return ``anchor`` moved forward by ``count`` units of ``frequency``."""
    if frequency == RepeatFrequency.DAILY:
        return anchor + timedelta(days=count)
    if frequency == RepeatFrequency.WEEKLY:
        return anchor + timedelta(weeks=count)
    if frequency == RepeatFrequency.MONTHLY:
        return _add_months(anchor, count)
    return _add_months(anchor, count * 12)


def plan_next_occurrence(series: Task, now: datetime) -> tuple[datetime | None, int]:
    """Compute the next occurrence date for a repeating series.

    Occurrence ``n`` falls ``n * interval`` periods after the series' start
    date; the next one is the first that lies strictly after the last
    materialized occurrence (or after the start date when nothing has been
    generated yet). Counting from the anchor keeps the day of month stable
    across short months (Jan 31, Feb 29, Mar 31).

    Grid dates that have already passed are skipped, not backfilled; the
    second element of the result counts them.

    Returns ``(None, 0)`` when the series has not started yet, when its end
    date has passed (the caller should deactivate it), when the next date
    falls after the end date, or when the series is misconfigured.
    """
    if series.repeat_start is not None and series.repeat_start > now:
        return None, 0
    if series.repeat_until is not None and series.repeat_until < now:
        return None, 0

    try:
        frequency = RepeatFrequency(series.repeat_frequency)
    except ValueError:
        return None, 0

    interval = series.repeat_interval or 0
    anchor = series.start_date
    if interval < 1 or anchor is None:
        return None, 0

    base = series.last_repeated_at or anchor
    step = 1
    candidate = add_period(anchor, frequency, interval)
    while candidate <= base:
        step += 1
        candidate = add_period(anchor, frequency, interval * step)

    skipped = 0
    while candidate <= now:
        skipped += 1
        step += 1
        candidate = add_period(anchor, frequency, interval * step)

    if series.repeat_until is not None and candidate > series.repeat_until:
        return None, 0
    return candidate, skipped


def next_occurrence(series: Task, now: datetime) -> datetime | None:
    """The next occurrence date strictly after ``now``, or None; see :func:`plan_next_occurrence`."""
    return plan_next_occurrence(series, now)[0]


def format_occurrence_title(title: str, day: datetime) -> str:
    """Append a readable date, e.g. ``"Weekly report 15 Jan 2024"``."""
    return f"{title} {day.day} {day.strftime('%b %Y')}"


# =========================================================================
# Occurrence Template
# =========================================================================

@dataclass(frozen=True, slots=True)
class OccurrenceTemplate:
    """The fields an occurrence inherits from its series.

    Assignees and tags are not part of the template and are never copied;
    occurrences start unassigned.
    """

    VERSION: ClassVar[int] = 1

    title: str
    description: str | None
    status_id: UUID | None
    priority_id: UUID | None
    task_type_id: UUID | None
    project_id: UUID | None
    note: str | None
    deliverable_quantity: int | None
    close_deadline: bool
    created_by_id: UUID | None

    @classmethod
    def from_series(cls, series: Task) -> "OccurrenceTemplate":
        return cls(
            title=series.title,
            description=series.description,
            status_id=series.status_id,
            priority_id=series.priority_id,
            task_type_id=series.task_type_id,
            project_id=series.project_id,
            note=series.note,
            deliverable_quantity=series.deliverable_quantity,
            close_deadline=bool(series.close_deadline),
            created_by_id=series.created_by_id,
        )

    def build(
        self,
        series_id: UUID,
        start_date: datetime,
        end_date: datetime | None,
    ) -> Task:
        return Task(
            title=format_occurrence_title(self.title, start_date),
            description=self.description,
            status_id=self.status_id,
            priority_id=self.priority_id,
            task_type_id=self.task_type_id,
            project_id=self.project_id,
            note=self.note,
            deliverable_quantity=self.deliverable_quantity,
            close_deadline=self.close_deadline,
            created_by_id=self.created_by_id,
            start_date=start_date,
            end_date=end_date,
            is_repeating=False,
            parent_task_id=series_id,
        )


@dataclass(frozen=True)
class GeneratedOccurrence:
    """Snapshot of a created occurrence, safe to read after the session closes."""

    task_id: UUID
    series_id: UUID
    title: str
    start_date: datetime


@dataclass
class GenerationResult:
    """Outcome of one repeating-task sweep."""

    created: list[GeneratedOccurrence] = field(default_factory=list)
    skipped: int = 0
    deactivated: int = 0
    failed: int = 0


class RecurringTaskService:
    """Service for materializing occurrences of repeating task series."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # =========================================================================
    # Series Queries
    # =========================================================================

    async def get_active_series_ids(self) -> Sequence[UUID]:
        """IDs of every active root series."""
        result = await self.db.execute(
            select(Task.id).where(
                and_(
                    Task.is_repeating == True,  # noqa: E712
                    Task.repeat_active == True,  # noqa: E712
                    Task.parent_task_id.is_(None),
                )
            )
        )
        return result.scalars().all()

    async def get_series(self, series_id: UUID) -> Task | None:
        result = await self.db.execute(
            select(Task)
            .where(Task.id == series_id)
            .execution_options(populate_existing=True)
        )
        return result.unique().scalar_one_or_none()

    async def occurrence_exists(self, series_id: UUID, target_date: datetime) -> bool:
        """Check whether the series already has an occurrence on that calendar day."""
        day_start = datetime.combine(
            target_date.date(), time.min, tzinfo=target_date.tzinfo or timezone.utc
        )
        result = await self.db.execute(
            select(Task.id)
            .where(
                Task.parent_task_id == series_id,
                Task.start_date >= day_start,
                Task.start_date < day_start + timedelta(days=1),
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    # =========================================================================
    # Task Generation
    # =========================================================================

    async def materialize(self, series: Task, target_date: datetime) -> Task | None:
        """Create the occurrence of ``series`` starting on ``target_date``.

        Returns None if an occurrence for that day already exists. The new
        task and the series' ``last_repeated_at`` are committed together.

        Raises:
            MaterializationError: if the insert or the series update fails.
        """
        series_id = series.id
        if await self.occurrence_exists(series_id, target_date):
            logger.info(
                "recurring_occurrence_exists",
                series_id=str(series_id),
                target_date=target_date.date().isoformat(),
            )
            return None

        end_date = None
        if series.start_date is not None and series.end_date is not None:
            duration_days = (series.end_date - series.start_date).days
            end_date = target_date + timedelta(days=duration_days)

        template = OccurrenceTemplate.from_series(series)
        occurrence = template.build(series_id, target_date, end_date)

        try:
            self.db.add(occurrence)
            series.last_repeated_at = target_date
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise MaterializationError(series_id, str(e)) from e

        logger.info(
            "recurring_task_created",
            task_id=str(occurrence.id),
            series_id=str(series_id),
            title=occurrence.title,
            start_date=target_date.date().isoformat(),
            template_version=OccurrenceTemplate.VERSION,
        )
        return occurrence

    async def generate_due(self, now: datetime | None = None) -> GenerationResult:
        """Sweep every active series and materialize its next occurrence.

        A series whose most recent occurrence has not started yet is left
        alone, so at most one upcoming occurrence exists per series. Failures
        are isolated per series.
        """
        now = now or datetime.now(timezone.utc)
        result = GenerationResult()

        series_ids = await self.get_active_series_ids()
        for series_id in series_ids:
            try:
                series = await self.get_series(series_id)
                if series is None:
                    continue

                if series.repeat_until is not None and series.repeat_until < now:
                    series.repeat_active = False
                    await self.db.commit()
                    result.deactivated += 1
                    logger.info("recurring_series_ended", series_id=str(series_id))
                    continue

                if series.last_repeated_at is not None and series.last_repeated_at > now:
                    result.skipped += 1
                    continue

                target, missed = plan_next_occurrence(series, now)
                if target is None:
                    result.skipped += 1
                    continue
                if missed:
                    logger.warning(
                        "recurring_occurrences_skipped",
                        series_id=str(series_id),
                        skipped=missed,
                        next_date=target.date().isoformat(),
                    )

                occurrence = await self.materialize(series, target)
                if occurrence is None:
                    result.skipped += 1
                else:
                    result.created.append(
                        GeneratedOccurrence(
                            task_id=occurrence.id,
                            series_id=series_id,
                            title=occurrence.title,
                            start_date=target,
                        )
                    )

            except Exception as e:
                await self.db.rollback()
                result.failed += 1
                logger.error(
                    "recurring_task_creation_failed",
                    series_id=str(series_id),
                    error=str(e),
                )
                continue

        logger.info(
            "recurring_series_processed",
            series_processed=len(series_ids),
            tasks_created=len(result.created),
            skipped=result.skipped,
            deactivated=result.deactivated,
            failed=result.failed,
        )
        return result
