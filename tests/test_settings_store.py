"""
Settings store tests.
"""

from datetime import date, time

import pytest

from roomcheck.errors import NotFound, ValidationFailed
from roomcheck.services.settings_store import SettingsStore, normalize_days


def window(**overrides) -> dict:
    fields = {
        "setting_name": "Weekend",
        "start_time": time(20, 0),
        "end_time": time(22, 0),
        "applicable_days": "sat, sun",
    }
    fields.update(overrides)
    return fields


class TestNormalizeDays:
    def test_values(self):
        assert normalize_days(None) == "ALL"
        assert normalize_days("all") == "ALL"
        assert normalize_days("mon, wed") == "MON,WED"

    @pytest.mark.parametrize("value", ["MONDAY", "MON,XYZ", ","])
    def test_invalid(self, value):
        with pytest.raises(ValidationFailed):
            normalize_days(value)


class TestSettingsStore:
    async def test_ensure_default_is_idempotent(self, db):
        store = SettingsStore(db)
        first = await store.ensure_default()
        second = await store.ensure_default()
        await db.commit()

        assert first.id == second.id
        assert first.setting_name == "Default"
        assert first.start_time == time(21, 0)
        assert first.end_time == time(23, 59)
        assert first.exif_time_tolerance_minutes == 10
        assert first.gps_validation_enabled is False
        assert first.created_by == "SYSTEM"
        assert len(await store.list_all()) == 1

    async def test_create_applies_column_defaults(self, db):
        store = SettingsStore(db)
        setting = await store.create(window(), created_by="admin")
        await db.commit()

        assert setting.applicable_days == "SAT,SUN"
        assert setting.is_enabled is True
        assert setting.is_default is False
        assert setting.gps_radius_meters == 100
        assert setting.created_by == "admin"

    async def test_new_default_demotes_previous(self, db):
        store = SettingsStore(db)
        old = await store.ensure_default()
        new = await store.create(window(is_default=True))
        await db.commit()

        await db.refresh(old)
        assert old.is_default is False
        assert new.is_default is True
        assert (await store.get_default()).id == new.id

    async def test_update_promotes_to_default(self, db):
        store = SettingsStore(db)
        old = await store.ensure_default()
        other = await store.create(window())
        await store.update(other.id, {"is_default": True, "end_time": time(23, 0)})
        await db.commit()

        await db.refresh(old)
        assert old.is_default is False
        assert other.is_default is True
        assert other.end_time == time(23, 0)

    async def test_duplicate_name(self, db):
        store = SettingsStore(db)
        await store.create(window())
        with pytest.raises(ValidationFailed):
            await store.create(window())

    async def test_rename_to_existing_name(self, db):
        store = SettingsStore(db)
        await store.ensure_default()
        other = await store.create(window())
        with pytest.raises(ValidationFailed):
            await store.update(other.id, {"setting_name": "Default"})

    async def test_missing_window(self, db):
        with pytest.raises(ValidationFailed):
            await SettingsStore(db).create({"setting_name": "Broken", "start_time": time(9, 0)})

    async def test_unknown_field(self, db):
        with pytest.raises(ValidationFailed):
            await SettingsStore(db).create(window(colour="blue"))

    async def test_default_cannot_be_deleted(self, db):
        store = SettingsStore(db)
        default = await store.ensure_default()
        with pytest.raises(ValidationFailed):
            await store.delete(default.id)

    async def test_delete(self, db):
        store = SettingsStore(db)
        setting = await store.create(window())
        await store.delete(setting.id)
        with pytest.raises(NotFound):
            await store.get(setting.id)

    async def test_toggle_and_list_enabled(self, db):
        store = SettingsStore(db)
        await store.ensure_default()
        pinned = await store.create(window(setting_name="Exam", inspection_date=date(2024, 6, 1)))

        toggled = await store.toggle_enabled(pinned.id)
        assert toggled.is_enabled is False
        assert [s.setting_name for s in await store.list_enabled()] == ["Default"]

        await store.toggle_enabled(pinned.id)
        assert len(await store.list_enabled()) == 2

    async def test_clearing_date_restores_weekday_policy(self, db):
        store = SettingsStore(db)
        dated = await store.create(window(setting_name="Exam", inspection_date=date(2024, 6, 1)))

        await store.update(dated.id, {"inspection_date": None, "dormitory_latitude": None})
        assert dated.inspection_date is None

    async def test_none_on_required_field_is_ignored(self, db):
        store = SettingsStore(db)
        setting = await store.create(window())

        await store.update(setting.id, {"start_time": None, "is_enabled": None})
        assert setting.start_time == time(20, 0)
        assert setting.is_enabled is True
