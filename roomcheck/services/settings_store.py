"""
Settings Store

CRUD for inspection policies. Keeps at most one default policy.
"""

import logging
from datetime import time
from typing import Any, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from roomcheck.errors import NotFound, ValidationFailed
from roomcheck.models import InspectionSetting
from roomcheck.models.setting import WEEKDAYS

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "setting_name", "start_time", "end_time", "inspection_date", "applicable_days",
    "is_enabled", "is_default", "exif_validation_enabled", "exif_time_tolerance_minutes",
    "gps_validation_enabled", "dormitory_latitude", "dormitory_longitude",
    "gps_radius_meters", "room_photo_validation_enabled",
)

# Fields an update may clear by passing None
CLEARABLE_FIELDS = ("inspection_date", "dormitory_latitude", "dormitory_longitude")

DEFAULT_SETTING = {
    "setting_name": "Default",
    "start_time": time(21, 0),
    "end_time": time(23, 59),
    "applicable_days": "ALL",
    "is_enabled": True,
    "is_default": True,
    "exif_validation_enabled": True,
    "exif_time_tolerance_minutes": 10,
    "gps_validation_enabled": False,
    "gps_radius_meters": 100,
    "room_photo_validation_enabled": True,
}


def normalize_days(value: Optional[str]) -> str:
    """Upper-case and validate an ``applicable_days`` value."""
    days = (value or "ALL").strip().upper()
    if days == "ALL":
        return days
    parts = [d.strip() for d in days.split(",") if d.strip()]
    unknown = [d for d in parts if d not in WEEKDAYS]
    if not parts or unknown:
        raise ValidationFailed(f"Invalid applicable days: {value}")
    return ",".join(parts)


class SettingsStore:
    """Inspection policy persistence on an async session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_all(self) -> Sequence[InspectionSetting]:
        result = await self.db.execute(
            select(InspectionSetting).order_by(
                InspectionSetting.is_default.desc(), InspectionSetting.id.asc()
            )
        )
        return result.scalars().all()

    async def list_enabled(self) -> Sequence[InspectionSetting]:
        result = await self.db.execute(
            select(InspectionSetting)
            .where(InspectionSetting.is_enabled == True)  # noqa: E712
            .order_by(InspectionSetting.id.asc())
        )
        return result.scalars().all()

    async def get(self, setting_id: int) -> InspectionSetting:
        setting = await self.db.get(InspectionSetting, setting_id)
        if setting is None:
            raise NotFound(f"Inspection setting {setting_id} not found")
        return setting

    async def get_default(self) -> Optional[InspectionSetting]:
        result = await self.db.execute(
            select(InspectionSetting).where(InspectionSetting.is_default == True)  # noqa: E712
        )
        return result.scalar_one_or_none()

    async def create(self, fields: dict[str, Any], created_by: Optional[str] = None) -> InspectionSetting:
        """
        Create a policy.

        Raises:
            ValidationFailed: missing window, bad weekday list or a name
                already in use
        """
        data = self._clean(fields)
        if not data.get("setting_name"):
            raise ValidationFailed("Setting name is required")
        if data.get("start_time") is None or data.get("end_time") is None:
            raise ValidationFailed("Start and end time are required")
        await self._ensure_unique_name(data["setting_name"])

        if data.get("is_default"):
            await self._clear_default()

        setting = InspectionSetting(created_by=created_by, **data)
        self.db.add(setting)
        await self.db.flush()
        logger.info("Created inspection setting %s", setting)
        return setting

    async def update(self, setting_id: int, fields: dict[str, Any]) -> InspectionSetting:
        """
        Partial update.

        ``None`` clears a field listed in ``CLEARABLE_FIELDS`` (a dated policy
        becomes a weekday policy again); on any other field it is ignored.
        """
        setting = await self.get(setting_id)
        data = {
            k: v for k, v in self._clean(fields).items()
            if v is not None or k in CLEARABLE_FIELDS
        }

        name = data.get("setting_name")
        if name and name != setting.setting_name:
            await self._ensure_unique_name(name)
        if data.get("is_default") and not setting.is_default:
            await self._clear_default()

        for key, value in data.items():
            setattr(setting, key, value)
        await self.db.flush()
        logger.info("Updated inspection setting %s", setting)
        return setting

    async def delete(self, setting_id: int) -> None:
        setting = await self.get(setting_id)
        if setting.is_default:
            raise ValidationFailed("The default inspection setting cannot be deleted")
        await self.db.delete(setting)
        await self.db.flush()
        logger.info("Deleted inspection setting %s", setting_id)

    async def toggle_enabled(self, setting_id: int) -> InspectionSetting:
        setting = await self.get(setting_id)
        setting.is_enabled = not setting.is_enabled
        await self.db.flush()
        logger.info("Inspection setting %s enabled=%s", setting_id, setting.is_enabled)
        return setting

    async def ensure_default(self) -> InspectionSetting:
        """Return the default policy, creating the stock one when absent."""
        existing = await self.get_default()
        if existing is not None:
            return existing

        setting = InspectionSetting(created_by="SYSTEM", **DEFAULT_SETTING)
        self.db.add(setting)
        await self.db.flush()
        logger.info("Created default inspection setting")
        return setting

    async def _clear_default(self) -> None:
        await self.db.execute(
            update(InspectionSetting)
            .where(InspectionSetting.is_default == True)  # noqa: E712
            .values(is_default=False)
            .execution_options(synchronize_session="fetch")
        )
        await self.db.flush()

    async def _ensure_unique_name(self, name: str) -> None:
        result = await self.db.execute(
            select(InspectionSetting.id).where(InspectionSetting.setting_name == name)
        )
        if result.first() is not None:
            raise ValidationFailed(f"Setting name '{name}' already exists")

    @staticmethod
    def _clean(fields: dict[str, Any]) -> dict[str, Any]:
        unknown = set(fields) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationFailed(f"Unknown setting fields: {', '.join(sorted(unknown))}")
        data = dict(fields)
        if "applicable_days" in data and data["applicable_days"] is not None:
            data["applicable_days"] = normalize_days(data["applicable_days"])
        tolerance = data.get("exif_time_tolerance_minutes")
        if tolerance is not None and tolerance < 0:
            raise ValidationFailed("EXIF time tolerance must not be negative")
        radius = data.get("gps_radius_meters")
        if radius is not None and radius <= 0:
            raise ValidationFailed("GPS radius must be positive")
        return data
