"""Notification delivery sweeps: scheduled sends and unread-notification digests."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Awaitable, Callable, Sequence
from uuid import UUID

import structlog
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from vendorconnect.config import Settings, get_settings
from vendorconnect.email.sender import OutgoingEmail, is_email_configured, send_email
from vendorconnect.email.templates.notification_digest import build_digest_email
from vendorconnect.exceptions import EmailNotConfiguredError
from vendorconnect.models.activity import Notification
from vendorconnect.models.user import User

logger = structlog.get_logger()

Mailer = Callable[[OutgoingEmail], Awaitable[None]]


@dataclass
class ScheduledSendResult:
    sent: int = 0
    failed: int = 0


@dataclass
class DigestResult:
    """Users emailed, users whose digest failed, and notifications stamped sent."""

    emails_sent: int = 0
    failed: int = 0
    notifications_sent: int = 0


@dataclass
class DigestPreview:
    user: User
    unread_count: int
    preview: list[Notification] = field(default_factory=list)

    @property
    def remaining(self) -> int:
        return max(self.unread_count - len(self.preview), 0)


class NotificationDispatchService:
    """Marks scheduled notifications sent and emails unread-notification digests."""

    def __init__(
        self,
        db: AsyncSession,
        mailer: Mailer | None = None,
        settings: Settings | None = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.mailer = mailer or partial(send_email, settings=self.settings)

    # =========================================================================
    # Scheduled Notifications
    # =========================================================================

    async def get_due_scheduled_ids(self, now: datetime) -> Sequence[UUID]:
        result = await self.db.execute(
            select(Notification.id)
            .where(
                Notification.scheduled_at.is_not(None),
                Notification.scheduled_at <= now,
                Notification.sent_at.is_(None),
            )
            .order_by(Notification.scheduled_at)
        )
        return result.scalars().all()

    async def send_scheduled(self, now: datetime | None = None) -> ScheduledSendResult:
        """Stamp ``sent_at`` on every due scheduled notification, one commit each."""
        now = now or datetime.now(timezone.utc)
        result = ScheduledSendResult()

        for notification_id in await self.get_due_scheduled_ids(now):
            try:
                notification = await self._load_notification(notification_id)
                if notification is None or not notification.mark_sent(now):
                    continue
                await self.db.commit()
                result.sent += 1
                logger.info(
                    "scheduled_notification_sent",
                    notification_id=str(notification_id),
                    user_id=str(notification.user_id),
                )
            except Exception as e:
                await self.db.rollback()
                result.failed += 1
                logger.error(
                    "scheduled_notification_failed",
                    notification_id=str(notification_id),
                    error=str(e),
                )

        logger.info("scheduled_notifications_processed", sent=result.sent, failed=result.failed)
        return result

    async def _load_notification(self, notification_id: UUID) -> Notification | None:
        result = await self.db.execute(
            select(Notification)
            .where(Notification.id == notification_id)
            .execution_options(populate_existing=True)
        )
        return result.unique().scalar_one_or_none()

    # =========================================================================
    # Unread Digests
    # =========================================================================

    def _digest_cutoff(self, now: datetime) -> datetime:
        return now - timedelta(minutes=self.settings.digest_grace_minutes)

    def _pending_filter(self, now: datetime):
        return (
            Notification.read_at.is_(None),
            Notification.sent_at.is_(None),
            or_(Notification.scheduled_at.is_(None), Notification.scheduled_at <= now),
            Notification.created_at <= self._digest_cutoff(now),
        )

    async def get_digest_user_ids(self, now: datetime) -> Sequence[UUID]:
        """Users with at least one unread, unsent notification older than the grace period."""
        result = await self.db.execute(
            select(Notification.user_id)
            .where(*self._pending_filter(now))
            .distinct()
        )
        return result.scalars().all()

    async def get_pending_for_user(self, user_id: UUID, now: datetime) -> Sequence[Notification]:
        """The user's digest notifications, newest first."""
        result = await self.db.execute(
            select(Notification)
            .where(
                Notification.user_id == user_id,
                *self._pending_filter(now),
            )
            .order_by(Notification.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return result.unique().scalars().all()

    async def send_unread_digests(self, now: datetime | None = None) -> DigestResult:
        """Email each user one digest of their pending notifications.

        Notifications are stamped ``sent_at`` only after the user's email was
        handed to the transport, so a failed send is retried by the next sweep
        and a sent one is never emailed again.

        Raises:
            EmailNotConfiguredError: if SMTP credentials are not set.
        """
        if not is_email_configured(self.settings):
            raise EmailNotConfiguredError()

        now = now or datetime.now(timezone.utc)
        result = DigestResult()

        for user_id in await self.get_digest_user_ids(now):
            try:
                notifications = await self.get_pending_for_user(user_id, now)
                if not notifications:
                    continue
                user = notifications[0].user

                digest = build_digest_email(
                    user,
                    notifications,
                    now,
                    app_name=self.settings.app_name,
                    app_url=self.settings.app_url,
                )
                await self.mailer(
                    OutgoingEmail(
                        to_address=user.email,
                        to_name=user.full_name,
                        subject=digest.subject,
                        html_body=digest.html_body,
                        text_body=digest.text_body,
                    )
                )

                stamped = sum(1 for n in notifications if n.mark_sent(now))
                await self.db.commit()

                result.emails_sent += 1
                result.notifications_sent += stamped
                logger.info(
                    "notification_digest_sent",
                    user_id=str(user_id),
                    notification_count=len(notifications),
                )
            except Exception as e:
                await self.db.rollback()
                result.failed += 1
                logger.error(
                    "notification_digest_failed",
                    user_id=str(user_id),
                    error=str(e),
                )

        logger.info(
            "notification_digests_processed",
            emails_sent=result.emails_sent,
            notifications_sent=result.notifications_sent,
            failed=result.failed,
        )
        return result

    async def preview_unread_digests(self, now: datetime | None = None) -> list[DigestPreview]:
        """Who would receive a digest right now, without sending or stamping anything."""
        now = now or datetime.now(timezone.utc)
        limit = self.settings.digest_preview_limit

        previews = []
        for user_id in await self.get_digest_user_ids(now):
            notifications = await self.get_pending_for_user(user_id, now)
            if not notifications:
                continue
            previews.append(
                DigestPreview(
                    user=notifications[0].user,
                    unread_count=len(notifications),
                    preview=list(notifications[:limit]),
                )
            )
        return previews
