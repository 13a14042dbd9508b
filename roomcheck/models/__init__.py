"""
Database Models

SQLAlchemy ORM models for RoomCheck.
"""

from roomcheck.models.inspection import InspectionRecord, InspectionStatus
from roomcheck.models.setting import InspectionSetting

__all__ = ["InspectionRecord", "InspectionStatus", "InspectionSetting"]
