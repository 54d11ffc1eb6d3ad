"""SQLAlchemy models package."""

from vendorconnect.models.user import User, UserRole
from vendorconnect.models.project import (
    TERMINAL_STATUS_KINDS,
    Client,
    Priority,
    Project,
    RepeatFrequency,
    Status,
    StatusKind,
    Tag,
    Task,
    TaskType,
    client_projects,
    project_users,
    task_tags,
    task_users,
)
from vendorconnect.models.activity import (
    Notification,
    NotificationPriority,
    NotificationType,
)
from vendorconnect.models.setting import ProjectMetricsBaseline, Setting

__all__ = [
    # Users
    "User",
    "UserRole",
    # Projects & Tasks
    "Client",
    "Priority",
    "Project",
    "RepeatFrequency",
    "Status",
    "StatusKind",
    "TERMINAL_STATUS_KINDS",
    "Tag",
    "Task",
    "TaskType",
    "client_projects",
    "project_users",
    "task_tags",
    "task_users",
    # Notifications
    "Notification",
    "NotificationPriority",
    "NotificationType",
    # Settings & metrics
    "ProjectMetricsBaseline",
    "Setting",
]
