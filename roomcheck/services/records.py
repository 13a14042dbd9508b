"""
Record Store

Persistence and queries for inspection records.
"""

import logging
import re
from collections import defaultdict
from datetime import date
from typing import Any, Optional, Sequence

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from roomcheck.errors import DuplicateSubmission, NotFound, ValidationFailed
from roomcheck.models import InspectionRecord, InspectionStatus
from roomcheck.services.directory import Occupant

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("score", "status", "rationale", "admin_comment", "is_re_inspection")
NOT_SUBMITTED = "NOT_SUBMITTED"


def floor_of(room_number: str) -> Optional[int]:
    """
    Floor derived from a room number: ``305`` -> 3, ``1203`` -> 12, ``12`` -> 1.

    Returns None when the room number holds no digits.
    """
    match = re.search(r"\d+", room_number or "")
    if not match:
        return None
    digits = match.group()
    return int(digits[:-2] if len(digits) > 2 else digits[0])


class RecordStore:
    """Inspection record persistence on an async session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, record: InspectionRecord) -> InspectionRecord:
        """
        Insert a record.

        Raises:
            DuplicateSubmission: the subject already has a PASS for that day
        """
        subject_id = record.subject_id
        self.db.add(record)
        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning("Daily PASS already recorded for %s: %s", subject_id, e.orig)
            raise DuplicateSubmission("Inspection already passed today") from e
        logger.info("Created inspection %s", record)
        return record

    async def get(self, record_id: int) -> InspectionRecord:
        record = await self.db.get(InspectionRecord, record_id)
        if record is None:
            raise NotFound(f"Inspection {record_id} not found")
        return record

    async def find_today(self, subject_id: str, day: date) -> Optional[InspectionRecord]:
        """Latest record of a subject on a calendar day."""
        result = await self.db.execute(
            select(InspectionRecord)
            .where(
                InspectionRecord.subject_id == subject_id,
                InspectionRecord.inspection_day == day,
            )
            .order_by(InspectionRecord.inspection_date.desc(), InspectionRecord.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_for_subject(self, subject_id: str) -> Sequence[InspectionRecord]:
        result = await self.db.execute(
            select(InspectionRecord)
            .where(InspectionRecord.subject_id == subject_id)
            .order_by(InspectionRecord.inspection_date.desc(), InspectionRecord.id.desc())
        )
        return result.scalars().all()

    async def list_all(self, limit: int = 100, offset: int = 0) -> Sequence[InspectionRecord]:
        result = await self.db.execute(
            select(InspectionRecord)
            .order_by(InspectionRecord.inspection_date.desc(), InspectionRecord.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return result.scalars().all()

    async def count(self) -> int:
        result = await self.db.execute(select(func.count(InspectionRecord.id)))
        return result.scalar() or 0

    async def list_by_date(self, day: date) -> Sequence[InspectionRecord]:
        result = await self.db.execute(
            select(InspectionRecord)
            .where(InspectionRecord.inspection_day == day)
            .order_by(InspectionRecord.inspection_date.desc(), InspectionRecord.id.desc())
        )
        return result.scalars().all()

    async def update_fields(self, record_id: int, **fields: Any) -> InspectionRecord:
        """
        Partial update. ``None`` values are ignored.

        Raises:
            ValidationFailed: unknown field, bad status or out-of-range score
        """
        record = await self.get(record_id)
        for name, value in fields.items():
            if name not in UPDATABLE_FIELDS:
                raise ValidationFailed(f"Field '{name}' cannot be updated")
            if value is None:
                continue
            if name == "score" and not 0 <= value <= 10:
                raise ValidationFailed("Score must be between 0 and 10")
            if name == "status":
                value = _status_value(value)
            setattr(record, name, value)
        await self._flush_override(record)
        logger.info("Updated inspection %s: %s", record_id, sorted(k for k, v in fields.items() if v is not None))
        return record

    async def set_status(
        self, record_id: int, status: InspectionStatus, comment: str
    ) -> InspectionRecord:
        record = await self.get(record_id)
        record.status = _status_value(status)
        record.admin_comment = comment
        await self._flush_override(record)
        logger.info("Inspection %s set to %s", record_id, record.status)
        return record

    async def delete(self, record_id: int) -> InspectionRecord:
        """Remove a record and return it (the caller owns its blob)."""
        record = await self.get(record_id)
        await self.db.delete(record)
        await self.db.flush()
        logger.info("Deleted inspection %s", record_id)
        return record

    async def statistics(self, day: Optional[date] = None) -> dict[str, Any]:
        query = select(
            func.count(InspectionRecord.id),
            func.sum(case((InspectionRecord.status == InspectionStatus.PASS.value, 1), else_=0)),
            func.sum(case((InspectionRecord.status == InspectionStatus.FAIL.value, 1), else_=0)),
            func.sum(case((InspectionRecord.is_re_inspection == True, 1), else_=0)),  # noqa: E712
        )
        if day is not None:
            query = query.where(InspectionRecord.inspection_day == day)
        total, passed, failed, re_inspections = (await self.db.execute(query)).one()
        total = total or 0
        passed = passed or 0
        return {
            "date": day.isoformat() if day else None,
            "total": total,
            "passed": passed,
            "failed": failed or 0,
            "re_inspections": re_inspections or 0,
            "pass_rate": round(passed * 100 / total, 1) if total else 0.0,
        }

    async def building_status(
        self, building: str, day: date, roster: Sequence[Occupant]
    ) -> dict[str, Any]:
        """
        Floor/room matrix of a building for one day.

        Each occupant shows the status of their latest record that day, or
        ``NOT_SUBMITTED``.
        """
        subject_ids = [o.subject_id for o in roster]
        latest: dict[str, InspectionRecord] = {}
        if subject_ids:
            result = await self.db.execute(
                select(InspectionRecord)
                .where(
                    InspectionRecord.inspection_day == day,
                    InspectionRecord.subject_id.in_(subject_ids),
                )
                .order_by(InspectionRecord.inspection_date.asc(), InspectionRecord.id.asc())
            )
            for record in result.scalars():
                latest[record.subject_id] = record

        floors: dict[int, dict[str, list[dict]]] = defaultdict(lambda: defaultdict(list))
        counts = {"total_occupants": 0, "submitted": 0, "passed": 0, "failed": 0}

        for occupant in roster:
            floor = floor_of(occupant.room_number)
            if floor is None:
                logger.debug("Skipping room without digits: %r", occupant.room_number)
                continue

            record = latest.get(occupant.subject_id)
            entry = {
                "subject_id": occupant.subject_id,
                "name": occupant.name,
                "status": record.status if record else NOT_SUBMITTED,
                "score": record.score if record else None,
            }
            floors[floor][occupant.room_number].append(entry)

            counts["total_occupants"] += 1
            if record:
                counts["submitted"] += 1
                counts["passed" if record.passed else "failed"] += 1

        return {
            "building": building,
            "date": day.isoformat(),
            "floors": {
                floor: dict(sorted(rooms.items())) for floor, rooms in sorted(floors.items())
            },
            **counts,
        }

    async def _flush_override(self, record: InspectionRecord) -> None:
        subject_id, day = record.subject_id, record.inspection_day
        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            raise DuplicateSubmission(f"Subject {subject_id} already has a PASS for {day}") from e


def _status_value(status: Any) -> str:
    if isinstance(status, str):
        status = status.strip().upper()
    try:
        return InspectionStatus(status).value
    except ValueError as e:
        raise ValidationFailed(f"Invalid status: {status}") from e
