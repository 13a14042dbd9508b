"""
Pydantic Schemas

Request/Response models for the API.
"""
from __future__ import annotations

from datetime import date, datetime, time

from pydantic import BaseModel, Field, field_validator


# ============================================================================
# Inspection Schemas
# ============================================================================

class InspectionResponse(BaseModel):
    """Inspection record response."""
    id: int
    subject_id: str
    room_number: str
    building: str | None
    image_path: str | None
    score: int
    status: str
    rationale: str | None
    admin_comment: str | None
    is_re_inspection: bool
    inspection_date: datetime
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class InspectionListResponse(BaseModel):
    """List of inspections response."""
    inspections: list[InspectionResponse]
    total: int


class TodayResponse(BaseModel):
    """Today's inspection for the calling subject."""
    completed: bool
    inspection: InspectionResponse | None = None


class InspectionUpdateRequest(BaseModel):
    """Admin partial update of a record."""
    score: int | None = Field(default=None, ge=0, le=10)
    status: str | None = None
    rationale: str | None = None
    admin_comment: str | None = None
    is_re_inspection: bool | None = None

    @field_validator("status")
    @classmethod
    def status_upper(cls, v):
        return v.upper() if v else v


class CommentRequest(BaseModel):
    """Admin comment, or the reason for an override."""
    comment: str | None = None


class RejectRequest(BaseModel):
    """Reject a submission."""
    reason: str | None = None


class GateResponse(BaseModel):
    """Current time-window decision."""
    allowed: bool
    message: str
    setting_id: int | None = None
    setting_name: str | None = None
    window: str | None = None
    next_date: date | None = None
    days_until: int | None = None


class StatisticsResponse(BaseModel):
    """Inspection counts."""
    date: str | None
    total: int
    passed: int
    failed: int
    re_inspections: int
    pass_rate: float


class OccupantStatus(BaseModel):
    subject_id: str
    name: str
    status: str
    score: int | None = None


class BuildingStatusResponse(BaseModel):
    """Floor/room matrix of one building for one day."""
    building: str
    date: str
    floors: dict[int, dict[str, list[OccupantStatus]]]
    total_occupants: int
    submitted: int
    passed: int
    failed: int


# ============================================================================
# Inspection Setting Schemas
# ============================================================================

class SettingBase(BaseModel):
    exif_validation_enabled: bool | None = None
    exif_time_tolerance_minutes: int | None = Field(default=None, ge=0)
    gps_validation_enabled: bool | None = None
    dormitory_latitude: float | None = Field(default=None, ge=-90, le=90)
    dormitory_longitude: float | None = Field(default=None, ge=-180, le=180)
    gps_radius_meters: int | None = Field(default=None, gt=0)
    room_photo_validation_enabled: bool | None = None


class SettingCreate(SettingBase):
    """Request to create an inspection policy."""
    setting_name: str = Field(min_length=1, max_length=100)
    start_time: time
    end_time: time
    inspection_date: date | None = None
    applicable_days: str = "ALL"
    is_enabled: bool = True
    is_default: bool = False


class SettingUpdate(SettingBase):
    """Partial update of an inspection policy."""
    setting_name: str | None = Field(default=None, min_length=1, max_length=100)
    start_time: time | None = None
    end_time: time | None = None
    inspection_date: date | None = None
    applicable_days: str | None = None
    is_enabled: bool | None = None
    is_default: bool | None = None


class SettingResponse(BaseModel):
    """Inspection policy response."""
    id: int
    setting_name: str
    start_time: time
    end_time: time
    inspection_date: date | None
    applicable_days: str
    is_enabled: bool
    is_default: bool
    exif_validation_enabled: bool
    exif_time_tolerance_minutes: int
    gps_validation_enabled: bool
    dormitory_latitude: float | None
    dormitory_longitude: float | None
    gps_radius_meters: int
    room_photo_validation_enabled: bool
    created_by: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ============================================================================
# Health/Status Schemas
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "healthy"
    version: str
    services: dict[str, str] = {}
