"""Tests for the settings store."""

import pytest

from vendorconnect.models import Setting
from vendorconnect.services.setting import SettingService, cast_value


class TestCastValue:
    def test_boolean(self):
        assert cast_value("1", "boolean") is True
        assert cast_value("Yes", "boolean") is True
        assert cast_value("0", "boolean") is False
        assert cast_value("off", "boolean") is False

    def test_integer_and_json(self):
        assert cast_value("30", "integer") == 30
        assert cast_value('{"days": [1, 2]}', "json") == {"days": [1, 2]}
        assert cast_value("plain", "string") == "plain"

    def test_invalid_integer_raises(self):
        with pytest.raises(ValueError):
            cast_value("thirty", "integer")


class TestSettingService:
    async def test_missing_key_returns_default(self, db):
        assert await SettingService(db).get_value("auto_archive_days", default=30) == 30

    async def test_set_and_get_typed_value(self, db):
        service = SettingService(db)

        await service.set_value("auto_archive_days", 45, value_type="integer", group="tasks")

        assert await service.get_value("auto_archive_days") == 45

    async def test_set_value_updates_existing_row(self, db):
        service = SettingService(db)

        first = await service.set_value("auto_archive_enabled", False, value_type="boolean")
        second = await service.set_value("auto_archive_enabled", True, value_type="boolean")

        assert first.id == second.id
        assert second.value == "1"
        assert await service.is_enabled("auto_archive_enabled") is True

    async def test_tenant_value_overrides_global(self, db, make):
        admin = await make.user()
        other_admin = await make.user()
        service = SettingService(db)
        await service.set_value("auto_archive_days", 30, value_type="integer")
        await service.set_value("auto_archive_days", 7, value_type="integer", admin_id=admin.id)

        assert await service.get_value("auto_archive_days", admin_id=admin.id) == 7
        assert await service.get_value("auto_archive_days", admin_id=other_admin.id) == 30
        assert await service.get_value("auto_archive_days") == 30

    async def test_unparseable_value_falls_back_to_default(self, db):
        db.add(Setting(key="auto_archive_days", value="soon", type="integer"))
        await db.commit()

        assert await SettingService(db).get_value("auto_archive_days", default=30) == 30

    async def test_untyped_truthy_string_is_enabled(self, db):
        db.add(Setting(key="auto_archive_enabled", value="1", type="string"))
        await db.commit()

        assert await SettingService(db).is_enabled("auto_archive_enabled") is True
