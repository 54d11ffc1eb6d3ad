"""Services package."""

from vendorconnect.services.archive import ArchiveResult, AutoArchiveService
from vendorconnect.services.deadline import DeadlineScanResult, TaskDeadlineService
from vendorconnect.services.metrics_baseline import MetricsBaselineService
from vendorconnect.services.notification import NotificationService
from vendorconnect.services.notification_dispatch import (
    DigestPreview,
    DigestResult,
    NotificationDispatchService,
    ScheduledSendResult,
)
from vendorconnect.services.recurring_task import (
    GenerationResult,
    OccurrenceTemplate,
    RecurringTaskService,
    next_occurrence,
)
from vendorconnect.services.setting import SettingService
from vendorconnect.services.status import get_status, resolve_status

__all__ = [
    "ArchiveResult",
    "AutoArchiveService",
    "DeadlineScanResult",
    "TaskDeadlineService",
    "MetricsBaselineService",
    "NotificationService",
    "DigestPreview",
    "DigestResult",
    "NotificationDispatchService",
    "ScheduledSendResult",
    "GenerationResult",
    "OccurrenceTemplate",
    "RecurringTaskService",
    "next_occurrence",
    "SettingService",
    "get_status",
    "resolve_status",
]
