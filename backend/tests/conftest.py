"""Shared test fixtures: in-memory SQLite database and model factories."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import vendorconnect.models  # noqa: F401
from vendorconnect.config import Settings
from vendorconnect.db.base import Base
from vendorconnect.db.session import build_session_factory
from vendorconnect.models import (
    Client,
    Notification,
    NotificationPriority,
    NotificationType,
    Priority,
    Project,
    Status,
    StatusKind,
    Task,
    TaskType,
    User,
)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        smtp_user="mailer@example.com",
        smtp_password="app-password",
        app_url="https://vendorconnect.example.com",
    )


@pytest.fixture
async def engine():
    # StaticPool keeps the same connection so every session sees one in-memory DB
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


class Factory:
    """Creates and commits model instances with sensible defaults."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _save(self, obj):
        self.db.add(obj)
        await self.db.commit()
        return obj

    async def user(self, **kwargs) -> User:
        kwargs.setdefault("email", f"user-{uuid4().hex[:8]}@example.com")
        kwargs.setdefault("first_name", "Test")
        kwargs.setdefault("last_name", "User")
        return await self._save(User(**kwargs))

    async def status(self, kind: StatusKind, title: str | None = None) -> Status:
        title = title or kind.value.replace("_", " ").title()
        return await self._save(Status(title=title, slug=kind.value, kind=kind.value))

    async def priority(self, title: str) -> Priority:
        return await self._save(Priority(title=title))

    async def task_type(self, name: str = "Design") -> TaskType:
        return await self._save(TaskType(task_type=name))

    async def client(self, **kwargs) -> Client:
        kwargs.setdefault("first_name", "Acme")
        return await self._save(Client(**kwargs))

    async def project(self, **kwargs) -> Project:
        kwargs.setdefault("title", "Website redesign")
        kwargs.setdefault("users", [])
        kwargs.setdefault("clients", [])
        return await self._save(Project(**kwargs))

    async def task(self, **kwargs) -> Task:
        kwargs.setdefault("title", "Write copy")
        kwargs.setdefault("users", [])
        return await self._save(Task(**kwargs))

    async def series(self, **kwargs) -> Task:
        kwargs.setdefault("title", "Weekly report")
        kwargs.setdefault("is_repeating", True)
        kwargs.setdefault("repeat_active", True)
        kwargs.setdefault("repeat_frequency", "weekly")
        kwargs.setdefault("repeat_interval", 1)
        kwargs.setdefault("users", [])
        return await self._save(Task(**kwargs))

    async def notification(self, user: User, age: timedelta | None = None, **kwargs) -> Notification:
        """Create a notification; ``age`` backdates ``created_at`` from the real clock."""
        kwargs.setdefault("notification_type", NotificationType.TASK_ASSIGNED.value)
        kwargs.setdefault("title", "New Task Assigned")
        kwargs.setdefault("message", "You have been assigned a new task")
        kwargs.setdefault("priority", NotificationPriority.MEDIUM.value)
        if age is not None:
            kwargs["created_at"] = datetime.now(timezone.utc) - age
        return await self._save(Notification(user_id=user.id, **kwargs))


@pytest.fixture
def make(db) -> Factory:
    return Factory(db)
