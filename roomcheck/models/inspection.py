"""
Inspection Record Model

One submission attempt and its verdict.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, Column, Date, DateTime, Index, Integer, String, Text, text

from roomcheck.database import Base


class InspectionStatus(str, Enum):
    """Inspection verdict values."""
    PASS = "PASS"
    FAIL = "FAIL"


class InspectionRecord(Base):
    """
    Inspection record model.

    Created once per submission attempt. Afterwards only admin actions touch
    it: manual PASS/FAIL overrides rewrite status and comment, reject and
    delete remove the row. "Today's record" is looked up by
    ``subject_id`` + ``inspection_day``.

    The partial unique index allows a single PASS per subject per day, so
    concurrent double submissions cannot both be recorded as passed.
    """

    __tablename__ = "inspections"
    __table_args__ = (
        Index(
            "uq_inspections_daily_pass",
            "subject_id",
            "inspection_day",
            unique=True,
            postgresql_where=text("status = 'PASS'"),
            sqlite_where=text("status = 'PASS'"),
        ),
        Index("ix_inspections_subject_day", "subject_id", "inspection_day"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    subject_id = Column(String(50), nullable=False)
    room_number = Column(String(20), nullable=False)
    building = Column(String(50), nullable=True, index=True)

    # Opaque blob store key
    image_path = Column(Text, nullable=True)

    # Verdict
    score = Column(Integer, nullable=False, default=0)  # 0-10
    status = Column(String(10), nullable=False, index=True)
    rationale = Column(Text, nullable=True)
    admin_comment = Column(Text, nullable=True)
    is_re_inspection = Column(Boolean, default=False, nullable=False)

    # Timing
    inspection_date = Column(DateTime, nullable=False)
    inspection_day = Column(Date, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<InspectionRecord {self.id} subject={self.subject_id} status={self.status} score={self.score}>"

    @property
    def passed(self) -> bool:
        return self.status == InspectionStatus.PASS.value
