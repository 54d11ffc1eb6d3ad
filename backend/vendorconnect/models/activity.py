"""Notification model for in-app alerts and email digests."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vendorconnect.db.base import BaseModel, UTCDateTime

if TYPE_CHECKING:
    from vendorconnect.models.user import User


class NotificationType(str, Enum):
    TASK_ASSIGNED = "task_assigned"
    TASK_COMPLETED = "task_completed"
    TASK_DUE_SOON = "task_due_soon"
    TASK_OVERDUE = "task_overdue"
    DELIVERABLE_ADDED = "deliverable_added"
    COMMENT_ADDED = "comment_added"
    PROJECT_UPDATED = "project_updated"
    CLIENT_UPDATED = "client_updated"


class NotificationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Notification(BaseModel):
    """
    In-app notification for a single user.

    ``sent_at`` and ``read_at`` are independent: a notification may be read
    in the app before the digest sweep ever emails it, in which case it is
    never emailed. ``sent_at`` is only ever set once.
    """

    __tablename__ = "notifications"

    # Notification content
    notification_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
        comment="task_assigned, task_due_soon, task_overdue, ...",
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    priority: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=NotificationPriority.MEDIUM.value,
    )

    # Target entity (for navigation)
    target_type: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
        comment="Type of entity to navigate to",
    )
    target_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
        index=True,
        comment="ID of entity to navigate to",
    )
    target_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    # Recipient
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Delivery
    scheduled_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True, index=True)
    sent_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    read_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # Additional data
    extra_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # Relationships
    user: Mapped["User"] = relationship("User", foreign_keys=[user_id], lazy="joined")

    def mark_as_read(self, now: datetime) -> bool:
        """Stamp ``read_at``; returns False if it was already read."""
        if self.read_at is not None:
            return False
        self.read_at = now
        return True

    def mark_as_unread(self) -> None:
        self.read_at = None

    def mark_sent(self, now: datetime) -> bool:
        """Stamp ``sent_at`` once; returns False if it was already sent."""
        if self.sent_at is not None:
            return False
        self.sent_at = now
        return True

    def __repr__(self) -> str:
        return f"<Notification {self.notification_type} user={self.user_id}>"
