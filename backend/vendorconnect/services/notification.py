"""Notification service for creating in-app notifications."""

from datetime import datetime, timedelta, timezone
from typing import Any, Iterable
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vendorconnect.models.activity import (
    Notification,
    NotificationPriority,
    NotificationType,
)
from vendorconnect.models.project import Client, Project, Task
from vendorconnect.models.user import User, UserRole

logger = structlog.get_logger()

# Task priority titles (lower-cased) to notification priority
TASK_PRIORITY_MAP = {
    "urgent": NotificationPriority.URGENT,
    "high": NotificationPriority.HIGH,
    "medium": NotificationPriority.MEDIUM,
    "low": NotificationPriority.LOW,
    "not urgent": NotificationPriority.LOW,
}


def priority_for_task(task: Task) -> NotificationPriority:
    """Map a task's own priority onto a notification priority."""
    if task.priority is None:
        return NotificationPriority.MEDIUM
    return TASK_PRIORITY_MAP.get(
        task.priority.title.strip().lower(), NotificationPriority.MEDIUM
    )


def task_recipients(task: Task) -> list[UUID]:
    """Assignees, then the creator if not already assigned."""
    recipients = [user.id for user in task.users]
    if task.created_by_id is not None and task.created_by_id not in recipients:
        recipients.append(task.created_by_id)
    return recipients


def _task_watchers_except(task: Task, actor_id: UUID) -> list[UUID]:
    """Creator and assignees, minus the user who caused the event."""
    watchers: list[UUID] = []
    if task.created_by_id is not None and task.created_by_id != actor_id:
        watchers.append(task.created_by_id)
    for user in task.users:
        if user.id != actor_id and user.id not in watchers:
            watchers.append(user.id)
    return watchers


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class NotificationService:
    """Service for creating and managing user notifications."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def notify(
        self,
        user_id: UUID,
        notification_type: NotificationType,
        title: str,
        message: str,
        priority: NotificationPriority = NotificationPriority.MEDIUM,
        target_type: str | None = None,
        target_id: UUID | None = None,
        target_url: str | None = None,
        extra_data: dict | None = None,
        scheduled_at: datetime | None = None,
        sender_id: UUID | None = None,
        commit: bool = True,
    ) -> Notification | None:
        """
        Create a notification for a user.

        Args:
            user_id: The recipient user's ID
            notification_type: Type of notification
            title: Notification title
            message: Notification body
            priority: Display priority, also used for email colour coding
            target_type: Optional entity type for navigation (e.g., 'task')
            target_id: Optional entity ID for navigation
            target_url: Optional direct URL to navigate to
            extra_data: Optional additional context data (JSON-serializable)
            scheduled_at: Optional delivery time for the scheduled-send sweep
            sender_id: Optional actor; users are never notified of their own actions
            commit: Commit immediately; pass False to flush and let the caller commit

        Returns:
            Created Notification, or None for a self-notification
        """
        if sender_id and sender_id == user_id:
            logger.debug(
                "skipping_self_notification",
                user_id=str(user_id),
                notification_type=notification_type.value,
            )
            return None

        notification = Notification(
            user_id=user_id,
            notification_type=notification_type.value,
            title=title,
            message=message,
            priority=priority.value,
            target_type=target_type,
            target_id=target_id,
            target_url=target_url,
            extra_data=extra_data,
            scheduled_at=scheduled_at,
        )
        self.db.add(notification)
        if commit:
            await self.db.commit()
        else:
            await self.db.flush()

        logger.info(
            "notification_created",
            notification_id=str(notification.id),
            user_id=str(user_id),
            notification_type=notification_type.value,
        )

        return notification

    async def notify_many(
        self,
        user_ids: Iterable[UUID],
        notification_type: NotificationType,
        title: str,
        message: str,
        **kwargs: Any,
    ) -> list[Notification]:
        """Create the same notification for several users in one transaction.

        Either every recipient gets the notification or none does.
        """
        notifications = []
        for user_id in user_ids:
            notification = await self.notify(
                user_id=user_id,
                notification_type=notification_type,
                title=title,
                message=message,
                commit=False,
                **kwargs,
            )
            if notification:
                notifications.append(notification)
        await self.db.commit()
        return notifications

    # =========================================================================
    # Task Events
    # =========================================================================

    async def task_assigned(
        self, task: Task, user: User, assigned_by_id: UUID | None = None
    ) -> Notification | None:
        assigned_by = assigned_by_id or task.created_by_id
        return await self.notify(
            user_id=user.id,
            notification_type=NotificationType.TASK_ASSIGNED,
            title="New Task Assigned",
            message=f"You have been assigned a new task: {task.title}",
            priority=priority_for_task(task),
            target_type="task",
            target_id=task.id,
            target_url=f"/tasks/{task.id}",
            extra_data={
                "task_id": str(task.id),
                "task_title": task.title,
                "project_id": str(task.project_id) if task.project_id else None,
                "assigned_by": str(assigned_by) if assigned_by else None,
            },
            sender_id=assigned_by_id,
        )

    async def task_completed(self, task: Task, completed_by: User) -> list[Notification]:
        return await self.notify_many(
            _task_watchers_except(task, completed_by.id),
            NotificationType.TASK_COMPLETED,
            title="Task Completed",
            message=f"Task '{task.title}' has been completed by {completed_by.full_name}",
            priority=NotificationPriority.MEDIUM,
            target_type="task",
            target_id=task.id,
            target_url=f"/tasks/{task.id}",
            extra_data={
                "task_id": str(task.id),
                "task_title": task.title,
                "completed_by": str(completed_by.id),
                "completed_by_name": completed_by.full_name,
            },
        )

    async def task_due_soon(self, task: Task, now: datetime | None = None) -> list[Notification]:
        """Notify assignees and creator that a task is due within the horizon."""
        now = now or datetime.now(timezone.utc)
        hours_until_due = int((task.end_date - now).total_seconds() // 3600)
        return await self.notify_many(
            task_recipients(task),
            NotificationType.TASK_DUE_SOON,
            title="Task Due Soon",
            message=f"Task '{task.title}' is due in {hours_until_due} hours",
            priority=priority_for_task(task),
            target_type="task",
            target_id=task.id,
            target_url=f"/tasks/{task.id}",
            extra_data={
                "task_id": str(task.id),
                "task_title": task.title,
                "due_date": _iso(task.end_date),
                "hours_until_due": hours_until_due,
            },
        )

    async def task_overdue(self, task: Task, now: datetime | None = None) -> list[Notification]:
        """Notify assignees and creator that a task is past its end date."""
        now = now or datetime.now(timezone.utc)
        days_overdue = (now - task.end_date).days
        return await self.notify_many(
            task_recipients(task),
            NotificationType.TASK_OVERDUE,
            title="Task Overdue",
            message=f"Task '{task.title}' is {days_overdue} days overdue",
            priority=priority_for_task(task),
            target_type="task",
            target_id=task.id,
            target_url=f"/tasks/{task.id}",
            extra_data={
                "task_id": str(task.id),
                "task_title": task.title,
                "due_date": _iso(task.end_date),
                "days_overdue": days_overdue,
            },
        )

    async def deliverable_added(
        self,
        task: Task,
        deliverable_id: UUID,
        deliverable_title: str,
        added_by: User,
    ) -> list[Notification]:
        return await self.notify_many(
            _task_watchers_except(task, added_by.id),
            NotificationType.DELIVERABLE_ADDED,
            title="New Deliverable Added",
            message=(
                f"A new deliverable has been added to task '{task.title}' "
                f"by {added_by.full_name}"
            ),
            priority=NotificationPriority.MEDIUM,
            target_type="task",
            target_id=task.id,
            target_url=f"/tasks/{task.id}",
            extra_data={
                "task_id": str(task.id),
                "task_title": task.title,
                "deliverable_id": str(deliverable_id),
                "deliverable_title": deliverable_title,
                "added_by": str(added_by.id),
                "added_by_name": added_by.full_name,
            },
        )

    async def comment_added(
        self,
        task: Task,
        message_id: UUID,
        body: str,
        added_by: User,
    ) -> list[Notification]:
        excerpt = body[:100] + ("..." if len(body) > 100 else "")
        return await self.notify_many(
            _task_watchers_except(task, added_by.id),
            NotificationType.COMMENT_ADDED,
            title="New Comment on Task",
            message=f"{added_by.full_name} commented on task '{task.title}'",
            priority=NotificationPriority.LOW,
            target_type="task",
            target_id=task.id,
            target_url=f"/tasks/{task.id}",
            extra_data={
                "task_id": str(task.id),
                "task_title": task.title,
                "message_id": str(message_id),
                "comment": excerpt,
                "added_by": str(added_by.id),
                "added_by_name": added_by.full_name,
            },
        )

    # =========================================================================
    # Project & Client Events
    # =========================================================================

    async def project_updated(
        self, project: Project, updated_by: User, update_type: str
    ) -> list[Notification]:
        recipients: list[UUID] = []
        if project.created_by_id is not None and project.created_by_id != updated_by.id:
            recipients.append(project.created_by_id)
        for user in project.users:
            if user.id != updated_by.id and user.id not in recipients:
                recipients.append(user.id)

        return await self.notify_many(
            recipients,
            NotificationType.PROJECT_UPDATED,
            title="Project Updated",
            message=(
                f"Project '{project.title}' has been {update_type} "
                f"by {updated_by.full_name}"
            ),
            priority=NotificationPriority.MEDIUM,
            target_type="project",
            target_id=project.id,
            target_url=f"/projects/{project.id}",
            extra_data={
                "project_id": str(project.id),
                "project_title": project.title,
                "update_type": update_type,
                "updated_by": str(updated_by.id),
                "updated_by_name": updated_by.full_name,
            },
        )

    async def client_updated(
        self, client: Client, updated_by: User, update_type: str
    ) -> list[Notification]:
        """Notify every admin and sub-admin except the actor."""
        result = await self.db.execute(
            select(User.id).where(
                User.role.in_([UserRole.ADMIN.value, UserRole.SUB_ADMIN.value]),
                User.id != updated_by.id,
            )
        )
        admin_ids = list(result.scalars().all())

        return await self.notify_many(
            admin_ids,
            NotificationType.CLIENT_UPDATED,
            title="Client Updated",
            message=(
                f"Client '{client.display_name}' has been {update_type} "
                f"by {updated_by.full_name}"
            ),
            priority=NotificationPriority.LOW,
            target_type="client",
            target_id=client.id,
            target_url=f"/clients/{client.id}",
            extra_data={
                "client_id": str(client.id),
                "client_name": client.display_name,
                "update_type": update_type,
                "updated_by": str(updated_by.id),
                "updated_by_name": updated_by.full_name,
            },
        )

    # =========================================================================
    # Scheduled Notifications
    # =========================================================================

    async def schedule_task_due_soon(
        self,
        task: Task,
        hours_before_due: int = 24,
        now: datetime | None = None,
    ) -> list[Notification]:
        """Queue a due-soon notification for delivery ``hours_before_due`` before the end date.

        Nothing is queued when the task has no end date or the delivery time
        has already passed.
        """
        now = now or datetime.now(timezone.utc)
        if task.end_date is None:
            return []

        scheduled_at = task.end_date - timedelta(hours=hours_before_due)
        if scheduled_at <= now:
            return []

        return await self.notify_many(
            task_recipients(task),
            NotificationType.TASK_DUE_SOON,
            title="Task Due Soon",
            message=f"Task '{task.title}' is due in {hours_before_due} hours",
            priority=priority_for_task(task),
            target_type="task",
            target_id=task.id,
            target_url=f"/tasks/{task.id}",
            extra_data={
                "task_id": str(task.id),
                "task_title": task.title,
                "due_date": _iso(task.end_date),
                "hours_before_due": hours_before_due,
            },
            scheduled_at=scheduled_at,
        )

    async def schedule_task_overdue(
        self,
        task: Task,
        days_after_due: int = 1,
        now: datetime | None = None,
    ) -> list[Notification]:
        """Queue an overdue notification for ``days_after_due`` after the end date."""
        now = now or datetime.now(timezone.utc)
        if task.end_date is None:
            return []

        scheduled_at = task.end_date + timedelta(days=days_after_due)
        if scheduled_at <= now:
            return []

        return await self.notify_many(
            task_recipients(task),
            NotificationType.TASK_OVERDUE,
            title="Task Overdue",
            message=f"Task '{task.title}' is {days_after_due} day(s) overdue",
            priority=priority_for_task(task),
            target_type="task",
            target_id=task.id,
            target_url=f"/tasks/{task.id}",
            extra_data={
                "task_id": str(task.id),
                "task_title": task.title,
                "due_date": _iso(task.end_date),
                "days_after_due": days_after_due,
            },
            scheduled_at=scheduled_at,
        )

    # =========================================================================
    # Read State
    # =========================================================================

    async def _get_for_user(self, notification_id: UUID, user_id: UUID) -> Notification | None:
        result = await self.db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        return result.unique().scalar_one_or_none()

    async def mark_read(
        self, notification_id: UUID, user_id: UUID, now: datetime | None = None
    ) -> Notification | None:
        notification = await self._get_for_user(notification_id, user_id)
        if notification is None:
            return None
        if notification.mark_as_read(now or datetime.now(timezone.utc)):
            await self.db.commit()
        return notification

    async def mark_unread(self, notification_id: UUID, user_id: UUID) -> Notification | None:
        notification = await self._get_for_user(notification_id, user_id)
        if notification is None:
            return None
        notification.mark_as_unread()
        await self.db.commit()
        return notification
