"""
Inspection Setting Model

A named inspection policy: time window, optional pinned date, weekday rules
and the validation toggles applied to submissions it admits.
"""

from datetime import date, datetime, time

from sqlalchemy import Boolean, Column, Date, DateTime, Float, Index, Integer, String, Time, text

from roomcheck.database import Base

WEEKDAYS = ("MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN")


class InspectionSetting(Base):
    """
    Inspection policy model.

    A policy is either date-pinned (``inspection_date`` set: it applies on
    that day only and weekday rules are ignored) or weekday-based
    (``applicable_days`` is ``ALL`` or a comma list such as ``MON,WED``).
    At most one policy is the default.
    """

    __tablename__ = "inspection_settings"
    __table_args__ = (
        Index(
            "uq_inspection_settings_default",
            "is_default",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default = 1"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    setting_name = Column(String(100), nullable=False, unique=True)

    # Window
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    inspection_date = Column(Date, nullable=True, index=True)
    applicable_days = Column(String(50), default="ALL", nullable=False)

    is_enabled = Column(Boolean, default=True, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)

    # Metadata forensics
    exif_validation_enabled = Column(Boolean, default=True, nullable=False)
    exif_time_tolerance_minutes = Column(Integer, default=10, nullable=False)
    gps_validation_enabled = Column(Boolean, default=False, nullable=False)
    dormitory_latitude = Column(Float, nullable=True)
    dormitory_longitude = Column(Float, nullable=True)
    gps_radius_meters = Column(Integer, default=100, nullable=False)

    # Content scoring
    room_photo_validation_enabled = Column(Boolean, default=True, nullable=False)

    created_by = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<InspectionSetting {self.id} {self.setting_name!r} {self.window_label}>"

    @property
    def window_label(self) -> str:
        return format_window(self.start_time, self.end_time)

    def is_within_window(self, moment: time) -> bool:
        """Inclusive window check; ``start > end`` spans midnight."""
        return is_within_window(self.start_time, self.end_time, moment)

    def applies_on_weekday(self, day: date) -> bool:
        """True when this dateless policy lists the weekday of ``day``."""
        if self.inspection_date is not None:
            return False
        days = (self.applicable_days or "ALL").strip().upper()
        if days == "ALL":
            return True
        wanted = {d.strip() for d in days.split(",") if d.strip()}
        return WEEKDAYS[day.weekday()] in wanted

    def days_until(self, today: date) -> int:
        if self.inspection_date is None:
            return 0
        return (self.inspection_date - today).days


def is_within_window(start: time, end: time, moment: time) -> bool:
    # start == end falls through to the wrap branch: open all day
    if start < end:
        return start <= moment <= end
    return moment >= start or moment <= end


def format_window(start: time, end: time) -> str:
    return f"{start.strftime('%H:%M')} ~ {end.strftime('%H:%M')}"
