"""
Submission Orchestrator

Runs a room photo through the inspection pipeline and owns the per-day
submission state machine:

    no submission -> PASS                      (terminal for the day)
    no submission -> FAIL -> resubmission -> PASS | FAIL -> ...

Admin overrides (manual pass/fail, reject, delete, edit, comment) act on
stored records directly.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from roomcheck import metrics
from roomcheck.config import Settings, get_settings
from roomcheck.errors import (
    ConfigurationError,
    DuplicateSubmission,
    GateDenied,
    NotFound,
    OracleFailure,
    ResubmissionNotAllowed,
    ValidationFailed,
)
from roomcheck.models import InspectionRecord, InspectionSetting, InspectionStatus
from roomcheck.pipeline.forensics import MetadataForensics, MetadataValidationResult
from roomcheck.pipeline.gate import GateDecision, TimeWindowGate
from roomcheck.pipeline.scorer import ContentScorer
from roomcheck.services.directory import BuildingRoster, IdentityStore, SubjectProfile
from roomcheck.services.lock import SubmissionLock
from roomcheck.services.records import RecordStore
from roomcheck.services.settings_store import SettingsStore
from roomcheck.services.storage import StorageService

logger = logging.getLogger(__name__)

PHOTO_CATEGORY = "inspections"
DEFAULT_PASS_COMMENT = "Manually passed by administrator"
DEFAULT_FAIL_COMMENT = "Manually failed by administrator"
CONTENT_CHECK_SKIPPED = "Room photo validation is disabled; inspection passed"


@dataclass
class Verdict:
    """Score and explanation produced by stages 5-7."""
    score: int
    rationale: str


class SubmissionOrchestrator:
    """
    Inspection pipeline entry point.

    Stages: resolve room -> gate -> duplicate check -> forensics -> scoring
    -> status -> store photo and record. Each stage is injected so tests can
    replace it.
    """

    def __init__(
        self,
        db: AsyncSession,
        identity: IdentityStore,
        storage: StorageService,
        roster: Optional[BuildingRoster] = None,
        scorer: Optional[ContentScorer] = None,
        forensics: Optional[MetadataForensics] = None,
        gate: Optional[TimeWindowGate] = None,
        lock: Optional[SubmissionLock] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.settings = settings or get_settings()
        self.records = RecordStore(db)
        self.policies = SettingsStore(db)
        self.identity = identity
        self.roster = roster
        self.storage = storage
        self.scorer = scorer or ContentScorer()
        self.forensics = forensics or MetadataForensics(clock=clock)
        self.gate = gate or TimeWindowGate()
        self.lock = lock or SubmissionLock()
        self.clock = clock

    # ------------------------------------------------------------------
    # Student operations
    # ------------------------------------------------------------------

    async def submit(
        self, subject_id: str, photo: bytes, room: Optional[str] = None
    ) -> InspectionRecord:
        """
        First submission of the day, or a retry after a FAIL.

        Raises:
            NotFound: unknown subject
            ConfigurationError: no room known, or subject inactive
            GateDenied: outside the inspection window
            DuplicateSubmission: already passed today, or a submission for
                this subject is in progress
            OracleFailure: scoring failed and fallback is disabled
        """
        self._check_photo(photo)
        profile, room_number = await self._resolve(subject_id, room)
        now = self.clock()
        decision = await self._admit(now)

        with self.lock.hold(subject_id):
            latest = await self.records.find_today(subject_id, now.date())
            if latest is not None and latest.passed:
                raise DuplicateSubmission("Inspection already passed today")
            return await self._inspect(
                profile, room_number, photo, decision.policy, now,
                is_re_inspection=latest is not None,
            )

    async def resubmit(
        self, subject_id: str, photo: bytes, room: Optional[str] = None
    ) -> InspectionRecord:
        """
        Retry after a same-day FAIL.

        Raises:
            ResubmissionNotAllowed: nothing submitted today
            DuplicateSubmission: already passed today
        """
        self._check_photo(photo)
        profile, room_number = await self._resolve(subject_id, room)
        now = self.clock()
        decision = await self._admit(now)

        with self.lock.hold(subject_id):
            latest = await self.records.find_today(subject_id, now.date())
            if latest is None:
                raise ResubmissionNotAllowed("No inspection to resubmit today")
            if latest.passed:
                raise DuplicateSubmission("Inspection already passed today")
            return await self._inspect(
                profile, room_number, photo, decision.policy, now, is_re_inspection=True
            )

    async def get_today(self, subject_id: str) -> Optional[InspectionRecord]:
        return await self.records.find_today(subject_id, self.clock().date())

    async def list_mine(self, subject_id: str) -> Sequence[InspectionRecord]:
        return await self.records.list_for_subject(subject_id)

    async def gate_status(self) -> GateDecision:
        """Current gate decision, for clients to show before a submission."""
        policies = await self.policies.list_enabled()
        return self.gate.evaluate(self.clock(), policies)

    # ------------------------------------------------------------------
    # Admin operations
    # ------------------------------------------------------------------

    async def manual_pass(self, record_id: int, comment: Optional[str] = None) -> InspectionRecord:
        return await self.records.set_status(
            record_id, InspectionStatus.PASS, (comment or "").strip() or DEFAULT_PASS_COMMENT
        )

    async def manual_fail(self, record_id: int, comment: Optional[str] = None) -> InspectionRecord:
        return await self.records.set_status(
            record_id, InspectionStatus.FAIL, (comment or "").strip() or DEFAULT_FAIL_COMMENT
        )

    async def reject(self, record_id: int, reason: Optional[str] = None) -> None:
        """Remove a submission so the subject can submit again."""
        record = await self.records.delete(record_id)
        logger.info(
            "Rejected inspection %s of %s: %s", record_id, record.subject_id, reason or "no reason given"
        )
        self._discard_photo(record.image_path)

    async def delete(self, record_id: int) -> None:
        record = await self.records.delete(record_id)
        self._discard_photo(record.image_path)

    async def update(self, record_id: int, fields: dict[str, Any]) -> InspectionRecord:
        return await self.records.update_fields(record_id, **fields)

    async def add_comment(self, record_id: int, comment: str) -> InspectionRecord:
        if not comment or not comment.strip():
            raise ValidationFailed("Comment must not be empty")
        return await self.records.update_fields(record_id, admin_comment=comment.strip())

    async def building_status(self, building: str, day: Optional[date] = None) -> dict[str, Any]:
        if self.roster is None:
            raise ConfigurationError("Building roster is not configured")
        occupants = await self.roster.list_occupants(building)
        return await self.records.building_status(building, day or self.clock().date(), occupants)

    # ------------------------------------------------------------------
    # Pipeline stages
    # ------------------------------------------------------------------

    def _check_photo(self, photo: bytes) -> None:
        if not photo:
            raise ValidationFailed("Photo is empty")
        limit = self.settings.max_upload_size_mb * 1024 * 1024
        if len(photo) > limit:
            raise ValidationFailed(f"Photo exceeds {self.settings.max_upload_size_mb}MB")

    async def _resolve(
        self, subject_id: str, room: Optional[str]
    ) -> tuple[SubjectProfile, str]:
        profile = await self.identity.get_subject_profile(subject_id)
        if profile is None:
            raise NotFound(f"Subject {subject_id} not found")
        if not profile.active:
            raise ConfigurationError("Subject is not active")

        room_number = (room or "").strip() or (profile.room_number or "").strip()
        if not room_number:
            raise ConfigurationError("No room number is registered for this subject")
        return profile, room_number

    async def _admit(self, now: datetime) -> GateDecision:
        decision = self.gate.evaluate(now, await self.policies.list_enabled())
        if not decision.allowed:
            metrics.gate_denials_total.inc()
            logger.info("Gate denied at %s: %s", now, decision.message)
            raise GateDenied(decision.message, decision.next_date, decision.days_until)
        return decision

    async def _inspect(
        self,
        profile: SubjectProfile,
        room_number: str,
        photo: bytes,
        policy: Optional[InspectionSetting],
        now: datetime,
        is_re_inspection: bool,
    ) -> InspectionRecord:
        forensic = self._run_forensics(photo, policy, now)
        if forensic is not None and not forensic.valid:
            metrics.record_forensic_failure(
                forensic.time_valid, forensic.location_valid, forensic.not_edited
            )
            verdict = await self._penalize(profile, photo, forensic)
        elif policy is not None and not policy.room_photo_validation_enabled:
            verdict = Verdict(self.settings.pass_threshold, CONTENT_CHECK_SKIPPED)
        else:
            verdict = await self._score(profile, photo)

        status = (
            InspectionStatus.PASS if verdict.score >= self.settings.pass_threshold
            else InspectionStatus.FAIL
        )
        record = await self._persist(
            profile, room_number, photo, verdict, status, now, is_re_inspection
        )
        metrics.record_submission(
            "resubmission" if is_re_inspection else "submission", status.value, verdict.score
        )
        return record

    def _run_forensics(
        self, photo: bytes, policy: Optional[InspectionSetting], now: datetime
    ) -> Optional[MetadataValidationResult]:
        if policy is None or not policy.exif_validation_enabled:
            return None
        expected_lat = expected_lon = None
        if policy.gps_validation_enabled:
            expected_lat, expected_lon = policy.dormitory_latitude, policy.dormitory_longitude
        return self.forensics.validate(
            photo,
            tolerance_minutes=policy.exif_time_tolerance_minutes,
            expected_lat=expected_lat,
            expected_lon=expected_lon,
            radius_m=policy.gps_radius_meters,
            now=now,
        )

    async def _penalize(
        self, profile: SubjectProfile, photo: bytes, forensic: MetadataValidationResult
    ) -> Verdict:
        if self.settings.forensic_penalty_mode == "zero":
            logger.info("Metadata check failed for %s, score 0", profile.subject_id)
            return Verdict(0, forensic.message)

        scored = await self._score(profile, photo)
        score = max(0, scored.score - self.settings.forensic_penalty_points)
        logger.info(
            "Metadata check failed for %s, score %d -> %d",
            profile.subject_id, scored.score, score,
        )
        return Verdict(score, f"{forensic.message} {scored.rationale}")

    async def _score(self, profile: SubjectProfile, photo: bytes) -> Verdict:
        reference = self._reference_photo(profile.building)
        result = await self.scorer.score(photo, reference)
        if not result.success:
            raise OracleFailure("Room photo scoring is temporarily unavailable")
        return Verdict(result.score, result.rationale)

    def _reference_photo(self, building: Optional[str]) -> Optional[bytes]:
        try:
            return self.storage.reference_photo(building)
        except Exception as e:
            logger.warning("Reference photo unavailable for %s: %s", building, e)
            return None

    async def _persist(
        self,
        profile: SubjectProfile,
        room_number: str,
        photo: bytes,
        verdict: Verdict,
        status: InspectionStatus,
        now: datetime,
        is_re_inspection: bool,
    ) -> InspectionRecord:
        key = self.storage.store(photo, PHOTO_CATEGORY)
        record = InspectionRecord(
            subject_id=profile.subject_id,
            room_number=room_number,
            building=profile.building,
            image_path=key,
            score=verdict.score,
            status=status.value,
            rationale=verdict.rationale,
            is_re_inspection=is_re_inspection,
            inspection_date=now,
            inspection_day=now.date(),
        )
        try:
            return await self.records.create(record)
        except DuplicateSubmission:
            self._discard_photo(key)
            raise

    def _discard_photo(self, key: Optional[str]) -> None:
        if key and not self.storage.delete(key):
            logger.warning("Could not delete photo %s", key)
