"""
Inspection Routes

Endpoints for submitting room photos and for admin review of inspections.
"""

import logging
from datetime import date
from pathlib import Path
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

from ..config import get_settings
from ..dependencies import get_orchestrator, get_subject_id
from ..schemas import (
    BuildingStatusResponse,
    CommentRequest,
    GateResponse,
    InspectionListResponse,
    InspectionResponse,
    InspectionUpdateRequest,
    RejectRequest,
    StatisticsResponse,
    TodayResponse,
)
from ..services.orchestrator import SubmissionOrchestrator

logger = logging.getLogger(__name__)
settings = get_settings()
router = APIRouter(prefix="/inspections", tags=["inspections"])


# ============================================================================
# Helper functions
# ============================================================================

async def read_photo(file: UploadFile) -> bytes:
    """Read an uploaded photo, enforcing type and size limits."""
    ext = Path(file.filename or "").suffix.lower()
    if ext not in settings.allowed_extensions:
        raise HTTPException(status_code=400, detail=f"{file.filename}: Invalid file type")

    content = await file.read()
    size_mb = len(content) / (1024 * 1024)
    if size_mb > settings.max_upload_size_mb:
        raise HTTPException(status_code=400, detail=f"File too large ({size_mb:.1f}MB)")
    if not content:
        raise HTTPException(status_code=400, detail="Empty file")
    return content


# ============================================================================
# Student endpoints
# ============================================================================

@router.post("/submit", response_model=InspectionResponse, status_code=status.HTTP_201_CREATED)
async def submit_inspection(
    file: Annotated[UploadFile, File(description="Room photo")],
    room_number: Annotated[Optional[str], Form()] = None,
    subject_id: str = Depends(get_subject_id),
    orchestrator: SubmissionOrchestrator = Depends(get_orchestrator),
) -> InspectionResponse:
    """
    Submit today's room photo.

    Runs the photo through gating, metadata checks and scoring and returns
    the stored verdict.
    """
    photo = await read_photo(file)
    record = await orchestrator.submit(subject_id, photo, room_number)
    return InspectionResponse.model_validate(record)


@router.post("/resubmit", response_model=InspectionResponse, status_code=status.HTTP_201_CREATED)
async def resubmit_inspection(
    file: Annotated[UploadFile, File(description="Room photo")],
    room_number: Annotated[Optional[str], Form()] = None,
    subject_id: str = Depends(get_subject_id),
    orchestrator: SubmissionOrchestrator = Depends(get_orchestrator),
) -> InspectionResponse:
    """Resubmit after a failed inspection today."""
    photo = await read_photo(file)
    record = await orchestrator.resubmit(subject_id, photo, room_number)
    return InspectionResponse.model_validate(record)


@router.get("/today", response_model=TodayResponse)
async def get_today(
    subject_id: str = Depends(get_subject_id),
    orchestrator: SubmissionOrchestrator = Depends(get_orchestrator),
) -> TodayResponse:
    record = await orchestrator.get_today(subject_id)
    if record is None:
        return TodayResponse(completed=False)
    return TodayResponse(completed=True, inspection=InspectionResponse.model_validate(record))


@router.get("/my", response_model=InspectionListResponse)
async def list_my_inspections(
    subject_id: str = Depends(get_subject_id),
    orchestrator: SubmissionOrchestrator = Depends(get_orchestrator),
) -> InspectionListResponse:
    records = await orchestrator.list_mine(subject_id)
    return InspectionListResponse(
        inspections=[InspectionResponse.model_validate(r) for r in records],
        total=len(records),
    )


@router.get("/gate", response_model=GateResponse)
async def gate_status(
    orchestrator: SubmissionOrchestrator = Depends(get_orchestrator),
) -> GateResponse:
    """Whether a submission would be admitted right now."""
    decision = await orchestrator.gate_status()
    policy = decision.policy
    return GateResponse(
        allowed=decision.allowed,
        message=decision.message,
        setting_id=policy.id if policy else None,
        setting_name=policy.setting_name if policy else None,
        window=policy.window_label if policy else None,
        next_date=decision.next_date,
        days_until=decision.days_until,
    )


@router.get("/statistics", response_model=StatisticsResponse)
async def statistics(
    day: Optional[date] = None,
    orchestrator: SubmissionOrchestrator = Depends(get_orchestrator),
) -> StatisticsResponse:
    """Inspection counts, overall or for one day."""
    return StatisticsResponse(**await orchestrator.records.statistics(day))


# ============================================================================
# Admin endpoints
# ============================================================================

@router.get("/admin/all", response_model=InspectionListResponse)
async def list_all_inspections(
    limit: int = 100,
    offset: int = 0,
    orchestrator: SubmissionOrchestrator = Depends(get_orchestrator),
) -> InspectionListResponse:
    """List all inspections, newest first."""
    records = await orchestrator.records.list_all(limit=limit, offset=offset)
    total = await orchestrator.records.count()
    return InspectionListResponse(
        inspections=[InspectionResponse.model_validate(r) for r in records],
        total=total,
    )


@router.get("/admin/date/{day}", response_model=InspectionListResponse)
async def list_inspections_by_date(
    day: date,
    orchestrator: SubmissionOrchestrator = Depends(get_orchestrator),
) -> InspectionListResponse:
    records = await orchestrator.records.list_by_date(day)
    return InspectionListResponse(
        inspections=[InspectionResponse.model_validate(r) for r in records],
        total=len(records),
    )


@router.get("/admin/building-status/{building}", response_model=BuildingStatusResponse)
async def building_status(
    building: str,
    day: Optional[date] = None,
    orchestrator: SubmissionOrchestrator = Depends(get_orchestrator),
) -> BuildingStatusResponse:
    """Floor/room submission matrix for a building."""
    return BuildingStatusResponse(**await orchestrator.building_status(building, day))


@router.get("/admin/{inspection_id}", response_model=InspectionResponse)
async def get_inspection(
    inspection_id: int,
    orchestrator: SubmissionOrchestrator = Depends(get_orchestrator),
) -> InspectionResponse:
    record = await orchestrator.records.get(inspection_id)
    return InspectionResponse.model_validate(record)


@router.put("/admin/{inspection_id}", response_model=InspectionResponse)
async def update_inspection(
    inspection_id: int,
    data: InspectionUpdateRequest,
    orchestrator: SubmissionOrchestrator = Depends(get_orchestrator),
) -> InspectionResponse:
    record = await orchestrator.update(inspection_id, data.model_dump(exclude_none=True))
    return InspectionResponse.model_validate(record)


@router.delete("/admin/{inspection_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_inspection(
    inspection_id: int,
    orchestrator: SubmissionOrchestrator = Depends(get_orchestrator),
) -> None:
    """Delete an inspection and its photo."""
    await orchestrator.delete(inspection_id)


@router.post("/admin/{inspection_id}/reject")
async def reject_inspection(
    inspection_id: int,
    data: RejectRequest,
    orchestrator: SubmissionOrchestrator = Depends(get_orchestrator),
) -> dict:
    """
    Reject a submission.

    The record and photo are removed so the student can submit again.
    """
    await orchestrator.reject(inspection_id, data.reason)
    return {"message": "Inspection rejected", "inspection_id": inspection_id}


@router.post("/admin/{inspection_id}/manual-pass", response_model=InspectionResponse)
async def manual_pass(
    inspection_id: int,
    data: CommentRequest,
    orchestrator: SubmissionOrchestrator = Depends(get_orchestrator),
) -> InspectionResponse:
    record = await orchestrator.manual_pass(inspection_id, data.comment)
    return InspectionResponse.model_validate(record)


@router.post("/admin/{inspection_id}/manual-fail", response_model=InspectionResponse)
async def manual_fail(
    inspection_id: int,
    data: CommentRequest,
    orchestrator: SubmissionOrchestrator = Depends(get_orchestrator),
) -> InspectionResponse:
    record = await orchestrator.manual_fail(inspection_id, data.comment)
    return InspectionResponse.model_validate(record)


@router.post("/admin/{inspection_id}/comment", response_model=InspectionResponse)
async def add_comment(
    inspection_id: int,
    data: CommentRequest,
    orchestrator: SubmissionOrchestrator = Depends(get_orchestrator),
) -> InspectionResponse:
    record = await orchestrator.add_comment(inspection_id, data.comment or "")
    return InspectionResponse.model_validate(record)
