"""Key/value settings store with typed reads."""

import json
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vendorconnect.models.setting import Setting

logger = structlog.get_logger()

TRUE_VALUES = {"1", "true", "yes", "on"}


def cast_value(raw: str | None, value_type: str) -> Any:
    """Convert a stored string into its declared type."""
    if raw is None:
        return None
    if value_type == "boolean":
        return raw.strip().lower() in TRUE_VALUES
    if value_type == "integer":
        return int(raw)
    if value_type == "json":
        return json.loads(raw)
    return raw


def _serialize(value: Any, value_type: str) -> str | None:
    if value is None:
        return None
    if value_type == "boolean":
        return "1" if value else "0"
    if value_type == "json":
        return json.dumps(value)
    return str(value)


class SettingService:
    """Reads and writes settings, preferring a tenant's value over the global one."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get(self, key: str, admin_id: UUID | None) -> Setting | None:
        query = select(Setting).where(Setting.key == key)
        if admin_id is None:
            query = query.where(Setting.admin_id.is_(None))
        else:
            query = query.where(Setting.admin_id == admin_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_value(
        self,
        key: str,
        default: Any = None,
        admin_id: UUID | None = None,
    ) -> Any:
        """Return the typed value for ``key``.

        A tenant-scoped lookup falls back to the global row, then to
        ``default``. Unparseable values are logged and treated as missing.
        """
        setting = None
        if admin_id is not None:
            setting = await self._get(key, admin_id)
        if setting is None:
            setting = await self._get(key, None)
        if setting is None or setting.value is None:
            return default

        try:
            return cast_value(setting.value, setting.type)
        except (ValueError, TypeError) as e:
            logger.warning(
                "setting_value_invalid",
                key=key,
                value_type=setting.type,
                error=str(e),
            )
            return default

    async def is_enabled(self, key: str, admin_id: UUID | None = None) -> bool:
        value = await self.get_value(key, default=False, admin_id=admin_id)
        if isinstance(value, str):
            return value.strip().lower() in TRUE_VALUES
        return bool(value)

    async def set_value(
        self,
        key: str,
        value: Any,
        value_type: str = "string",
        group: str = "general",
        admin_id: UUID | None = None,
        description: str | None = None,
    ) -> Setting:
        """Create or update a setting; ``admin_id`` None writes the global default."""
        setting = await self._get(key, admin_id)
        if setting is None:
            setting = Setting(admin_id=admin_id, key=key, group=group)
            self.db.add(setting)

        setting.value = _serialize(value, value_type)
        setting.type = value_type
        setting.group = group
        if description is not None:
            setting.description = description

        await self.db.commit()
        logger.info("setting_updated", key=key, admin_id=str(admin_id) if admin_id else None)
        return setting
