"""Tests for the schedule evaluator and the occurrence materializer."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from vendorconnect.exceptions import MaterializationError
from vendorconnect.models import RepeatFrequency, StatusKind, Tag, Task
from vendorconnect.services.recurring_task import (
    OccurrenceTemplate,
    RecurringTaskService,
    add_period,
    format_occurrence_title,
    next_occurrence,
    plan_next_occurrence,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def _series(**kwargs) -> Task:
    kwargs.setdefault("title", "Report")
    kwargs.setdefault("is_repeating", True)
    kwargs.setdefault("repeat_frequency", "weekly")
    kwargs.setdefault("repeat_interval", 1)
    kwargs.setdefault("start_date", utc(2024, 1, 1))
    return Task(**kwargs)


async def _occurrences(db, series_id) -> list[Task]:
    result = await db.execute(
        select(Task)
        .where(Task.parent_task_id == series_id)
        .order_by(Task.start_date)
        .execution_options(populate_existing=True)
    )
    return list(result.unique().scalars().all())


class TestNextOccurrence:
    def test_weekly_interval_two(self):
        series = _series(repeat_interval=2)
        assert next_occurrence(series, utc(2024, 1, 10)) == utc(2024, 1, 15)

    def test_counts_from_last_repeated_at(self):
        series = _series(last_repeated_at=utc(2024, 1, 15))
        assert next_occurrence(series, utc(2024, 1, 16)) == utc(2024, 1, 22)

    def test_monthly_twice_is_two_calendar_months(self):
        anchor = utc(2024, 1, 15, 9)
        series = _series(repeat_frequency="monthly", start_date=anchor)

        first = next_occurrence(series, utc(2024, 1, 20))
        series.last_repeated_at = first
        second = next_occurrence(series, utc(2024, 2, 16))

        assert first == utc(2024, 2, 15, 9)
        assert second == utc(2024, 3, 15, 9)
        assert second == add_period(anchor, RepeatFrequency.MONTHLY, 2)

    def test_month_end_clamps_without_drifting(self):
        series = _series(repeat_frequency="monthly", start_date=utc(2024, 1, 31))

        first = next_occurrence(series, utc(2024, 1, 31, 12))
        series.last_repeated_at = first
        second = next_occurrence(series, utc(2024, 3, 1))

        assert first == utc(2024, 2, 29)
        assert second == utc(2024, 3, 31)

    def test_yearly_from_leap_day(self):
        series = _series(repeat_frequency="yearly", start_date=utc(2024, 2, 29))
        assert next_occurrence(series, utc(2024, 3, 1)) == utc(2025, 2, 28)

    def test_daily(self):
        series = _series(repeat_frequency="daily", start_date=utc(2024, 1, 9, 8))
        assert next_occurrence(series, utc(2024, 1, 10)) == utc(2024, 1, 10, 8)

    def test_future_repeat_start_returns_none(self):
        series = _series(repeat_start=utc(2024, 2, 1))
        assert next_occurrence(series, utc(2024, 1, 3)) is None

    def test_passed_repeat_until_returns_none(self):
        series = _series(repeat_until=utc(2024, 1, 5))
        assert next_occurrence(series, utc(2024, 1, 6)) is None

    def test_occurrence_after_repeat_until_returns_none(self):
        series = _series(repeat_until=utc(2024, 1, 7))
        assert next_occurrence(series, utc(2024, 1, 6)) is None

    def test_passed_dates_are_skipped_not_backfilled(self):
        series = _series(repeat_frequency="daily")

        target, skipped = plan_next_occurrence(series, utc(2024, 3, 1))

        assert target == utc(2024, 3, 2)
        assert skipped == 60

    def test_weekly_skips_forward_on_the_anchor_grid(self):
        series = _series(last_repeated_at=utc(2024, 1, 8))

        target, skipped = plan_next_occurrence(series, utc(2024, 1, 30))

        assert target == utc(2024, 2, 5)
        assert skipped == 3

    def test_nothing_skipped_when_on_schedule(self):
        series = _series()
        assert plan_next_occurrence(series, utc(2024, 1, 3)) == (utc(2024, 1, 8), 0)

    def test_unknown_frequency_returns_none(self):
        series = _series(repeat_frequency="fortnightly")
        assert next_occurrence(series, utc(2024, 1, 3)) is None

    def test_non_positive_interval_returns_none(self):
        series = _series(repeat_interval=0)
        assert next_occurrence(series, utc(2024, 1, 3)) is None


class TestOccurrenceTitle:
    def test_format(self):
        assert format_occurrence_title("Report", utc(2024, 1, 5)) == "Report 5 Jan 2024"
        assert format_occurrence_title("Report", utc(2024, 12, 15)) == "Report 15 Dec 2024"


class TestOccurrenceTemplate:
    def test_build_marks_occurrence(self):
        series = _series(id=uuid4(), description="Summarize the week", note="Use template B")
        template = OccurrenceTemplate.from_series(series)
        occurrence = template.build(series.id, utc(2024, 1, 8), utc(2024, 1, 11))

        assert occurrence.is_repeating is False
        assert occurrence.parent_task_id == series.id
        assert occurrence.title == "Report 8 Jan 2024"
        assert occurrence.description == "Summarize the week"
        assert occurrence.note == "Use template B"


class TestMaterialize:
    async def test_weekly_scenario(self, db, make):
        series = await make.series(
            title="Weekly report",
            repeat_interval=2,
            start_date=utc(2024, 1, 1),
            end_date=utc(2024, 1, 4),
        )

        result = await RecurringTaskService(db).generate_due(now=utc(2024, 1, 10))

        assert len(result.created) == 1
        assert result.created[0].title == "Weekly report 15 Jan 2024"
        occurrences = await _occurrences(db, series.id)
        assert len(occurrences) == 1
        occurrence = occurrences[0]
        assert occurrence.title == "Weekly report 15 Jan 2024"
        assert occurrence.start_date == utc(2024, 1, 15)
        assert occurrence.end_date == utc(2024, 1, 18)
        assert occurrence.is_repeating is False

        reloaded = await RecurringTaskService(db).get_series(series.id)
        assert reloaded.last_repeated_at == utc(2024, 1, 15)

    async def test_same_date_twice_creates_one_occurrence(self, db, make):
        series = await make.series(start_date=utc(2024, 1, 1), end_date=utc(2024, 1, 2))
        service = RecurringTaskService(db)

        first = await service.materialize(series, utc(2024, 1, 8))
        second = await service.materialize(series, utc(2024, 1, 8, 15))

        assert first is not None
        assert second is None
        assert len(await _occurrences(db, series.id)) == 1

    async def test_rerun_does_not_create_second_upcoming_occurrence(self, db, make):
        series = await make.series(start_date=utc(2024, 1, 1))
        service = RecurringTaskService(db)

        await service.generate_due(now=utc(2024, 1, 3))
        result = await service.generate_due(now=utc(2024, 1, 4))

        assert result.created == []
        assert result.skipped == 1
        assert len(await _occurrences(db, series.id)) == 1

    async def test_assignees_and_tags_are_not_copied(self, db, make):
        assignee = await make.user()
        priority = await make.priority("High")
        status = await make.status(StatusKind.PENDING)
        tag = Tag(title="finance")
        series = await make.series(
            start_date=utc(2024, 1, 1),
            end_date=utc(2024, 1, 1),
            users=[assignee],
            tags=[tag],
            description="Monthly close",
            priority_id=priority.id,
            status_id=status.id,
            deliverable_quantity=3,
            close_deadline=True,
            created_by_id=assignee.id,
        )

        await RecurringTaskService(db).generate_due(now=utc(2024, 1, 3))

        occurrence = (await _occurrences(db, series.id))[0]
        assert occurrence.users == []
        assert occurrence.tags == []
        assert occurrence.description == "Monthly close"
        assert occurrence.priority_id == priority.id
        assert occurrence.status_id == status.id
        assert occurrence.deliverable_quantity == 3
        assert occurrence.close_deadline is True
        assert occurrence.created_by_id == assignee.id
        assert occurrence.end_date == occurrence.start_date

    async def test_commit_failure_raises_materialization_error(self, db, make):
        series = await make.series(start_date=utc(2024, 1, 1))
        series_id = series.id
        service = RecurringTaskService(db)

        with patch.object(db, "commit", AsyncMock(side_effect=SQLAlchemyError("disk full"))):
            with pytest.raises(MaterializationError) as exc_info:
                await service.materialize(series, utc(2024, 1, 8))

        assert exc_info.value.series_id == series_id
        assert exc_info.value.code == "MATERIALIZATION_FAILED"


class TestGenerateDue:
    async def test_ended_series_is_deactivated(self, db, make):
        series = await make.series(start_date=utc(2024, 1, 1), repeat_until=utc(2024, 1, 5))

        result = await RecurringTaskService(db).generate_due(now=utc(2024, 1, 10))

        assert result.deactivated == 1
        assert result.created == []
        reloaded = await RecurringTaskService(db).get_series(series.id)
        assert reloaded.repeat_active is False

    async def test_future_start_is_skipped(self, db, make):
        series = await make.series(start_date=utc(2024, 1, 1), repeat_start=utc(2024, 2, 1))

        result = await RecurringTaskService(db).generate_due(now=utc(2024, 1, 3))

        assert result.skipped == 1
        assert await _occurrences(db, series.id) == []

    async def test_inactive_and_child_tasks_are_ignored(self, db, make):
        inactive = await make.series(start_date=utc(2024, 1, 1), repeat_active=False)
        await make.task(is_repeating=True, parent_task_id=inactive.id, start_date=utc(2024, 1, 1))

        ids = await RecurringTaskService(db).get_active_series_ids()

        assert list(ids) == []

    async def test_failure_is_isolated_per_series(self, db, make):
        broken = await make.series(title="Broken", start_date=utc(2024, 1, 1))
        healthy = await make.series(title="Healthy", start_date=utc(2024, 1, 1))
        broken_id, healthy_id = broken.id, healthy.id
        original = RecurringTaskService.materialize

        async def flaky(self, series, target_date):
            if series.id == broken_id:
                raise MaterializationError(series.id, "constraint violated")
            return await original(self, series, target_date)

        with patch.object(RecurringTaskService, "materialize", flaky):
            result = await RecurringTaskService(db).generate_due(now=utc(2024, 1, 3))

        assert result.failed == 1
        assert len(result.created) == 1
        assert result.created[0].series_id == healthy_id
        assert len(await _occurrences(db, healthy_id)) == 1
        assert await _occurrences(db, broken_id) == []

    async def test_count_query(self, db, make):
        await make.series(start_date=utc(2024, 1, 1))
        await make.series(start_date=utc(2024, 1, 2))

        result = await RecurringTaskService(db).generate_due(now=utc(2024, 1, 3))

        total = await db.scalar(select(func.count()).select_from(Task).where(Task.parent_task_id.is_not(None)))
        assert total == len(result.created) == 2

    async def test_missed_daily_sweep_does_not_stall_the_series(self, db, make):
        series = await make.series(repeat_frequency="daily", start_date=utc(2024, 1, 1))
        series_id = series.id
        service = RecurringTaskService(db)

        for day in (1, 2):
            await service.generate_due(now=utc(2024, 1, day, 12))
        created_after_gap = 0
        for day in range(4, 15):
            result = await service.generate_due(now=utc(2024, 1, day, 12))
            created_after_gap += len(result.created)

        assert created_after_gap == 11
        starts = [occurrence.start_date for occurrence in await _occurrences(db, series_id)]
        assert utc(2024, 1, 4) not in starts
        assert starts[-1] == utc(2024, 1, 15)

    async def test_series_first_swept_weeks_after_its_anchor(self, db, make):
        series = await make.series(title="Weekly report", start_date=utc(2024, 1, 1))
        series_id = series.id

        with patch("vendorconnect.services.recurring_task.logger") as logger:
            result = await RecurringTaskService(db).generate_due(now=utc(2024, 1, 20))

        assert [occurrence.start_date for occurrence in result.created] == [utc(2024, 1, 22)]
        assert result.created[0].title == "Weekly report 22 Jan 2024"
        logger.warning.assert_called_once_with(
            "recurring_occurrences_skipped",
            series_id=str(series_id),
            skipped=2,
            next_date="2024-01-22",
        )
