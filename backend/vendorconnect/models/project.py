"""Project and Task models for vendor/client work tracking."""

from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vendorconnect.db.base import Base, BaseModel, UTCDateTime

if TYPE_CHECKING:
    from vendorconnect.models.user import User


class StatusKind(str, Enum):
    """What a status means to the scheduled jobs, independent of its title."""

    PENDING = "pending"
    SUBMITTED = "submitted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ARCHIVED = "archived"
    OTHER = "other"


# Stored values, not members: str-mixin enums hash by member name.
TERMINAL_STATUS_KINDS = frozenset({StatusKind.COMPLETED.value, StatusKind.ARCHIVED.value})


class RepeatFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


task_users = Table(
    "task_users",
    Base.metadata,
    Column("task_id", Uuid(as_uuid=True), ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)

task_tags = Table(
    "task_tags",
    Base.metadata,
    Column("task_id", Uuid(as_uuid=True), ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Uuid(as_uuid=True), ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)

project_users = Table(
    "project_users",
    Base.metadata,
    Column("project_id", Uuid(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)

client_projects = Table(
    "client_projects",
    Base.metadata,
    Column("client_id", Uuid(as_uuid=True), ForeignKey("clients.id", ondelete="CASCADE"), primary_key=True),
    Column("project_id", Uuid(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
)


class Status(BaseModel):
    """Workflow status shared by projects and tasks."""

    __tablename__ = "statuses"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    kind: Mapped[str] = mapped_column(
        String(20), nullable=False, default=StatusKind.OTHER.value, index=True
    )  # pending, submitted, in_progress, completed, archived, other
    admin_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    @property
    def is_terminal(self) -> bool:
        return self.kind in TERMINAL_STATUS_KINDS

    def __repr__(self) -> str:
        return f"<Status {self.slug} ({self.kind})>"


class Priority(BaseModel):
    """Task priority (Urgent, High, Medium, Low, Not Urgent...)."""

    __tablename__ = "priorities"

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<Priority {self.title}>"


class TaskType(BaseModel):
    __tablename__ = "task_types"

    task_type: Mapped[str] = mapped_column(String(255), nullable=False)


class Tag(BaseModel):
    __tablename__ = "tags"

    title: Mapped[str] = mapped_column(String(255), nullable=False)


class Client(BaseModel):
    """Vendor client; may own several projects."""

    __tablename__ = "clients"

    first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    company: Mapped[str | None] = mapped_column(String(255), nullable=True)

    @property
    def display_name(self) -> str:
        return self.company or f"{self.first_name} {self.last_name}".strip()


class Project(BaseModel):
    """Client project grouping tasks."""

    __tablename__ = "projects"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    status_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("statuses.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_by_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Timeline
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Relationships
    status: Mapped["Status | None"] = relationship("Status", lazy="joined")
    users: Mapped[list["User"]] = relationship(
        "User", secondary=project_users, lazy="selectin"
    )
    clients: Mapped[list["Client"]] = relationship(
        "Client", secondary=client_projects, lazy="selectin"
    )

    def __repr__(self) -> str:
        try:
            return f"<Project {self.title}>"
        except Exception:
            return f"<Project id={self.id}>"


class Task(BaseModel):
    """Task within a project.

    A task with ``is_repeating`` set and no parent is a repeating series; the
    scheduler materializes dated, non-repeating occurrences that point back to
    it through ``parent_task_id``.
    """

    __tablename__ = "tasks"

    # Basic info
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    status_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("statuses.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    priority_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("priorities.id", ondelete="SET NULL"),
        nullable=True,
    )
    task_type_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("task_types.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    project_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    created_by_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Timeline
    start_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True, index=True)

    # Deliverables
    deliverable_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    close_deadline: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Repetition (series only)
    is_repeating: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    repeat_frequency: Mapped[str | None] = mapped_column(
        String(20), nullable=True
    )  # daily, weekly, monthly, yearly
    repeat_interval: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    repeat_start: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    repeat_until: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    repeat_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_repeated_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # Series this occurrence was generated from
    parent_task_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("tasks.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Relationships
    status: Mapped["Status | None"] = relationship("Status", lazy="joined")
    priority: Mapped["Priority | None"] = relationship("Priority", lazy="joined")
    users: Mapped[list["User"]] = relationship(
        "User", secondary=task_users, lazy="selectin"
    )
    tags: Mapped[list["Tag"]] = relationship(
        "Tag", secondary=task_tags, lazy="selectin"
    )

    def __repr__(self) -> str:
        try:
            return f"<Task {self.title[:30]}>"
        except Exception:
            try:
                return f"<Task id={self.id}>"
            except Exception:
                return "<Task detached>"
