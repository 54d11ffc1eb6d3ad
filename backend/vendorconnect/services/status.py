"""Status lookup by kind."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vendorconnect.exceptions import ConfigurationError
from vendorconnect.models.project import Status, StatusKind


async def get_status(db: AsyncSession, kind: StatusKind) -> Status | None:
    """Return the first status of ``kind``, oldest first."""
    result = await db.execute(
        select(Status)
        .where(Status.kind == kind.value)
        .order_by(Status.created_at)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def resolve_status(db: AsyncSession, kind: StatusKind) -> Status:
    """Like :func:`get_status` but a missing status is a configuration error."""
    status = await get_status(db, kind)
    if status is None:
        raise ConfigurationError(f"{kind.value.replace('_', ' ').capitalize()} status not found")
    return status
