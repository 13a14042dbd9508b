"""
Domain Errors

Exceptions raised by the inspection services. Each carries the HTTP status
the API layer answers with; the FastAPI app maps them in one handler.
"""
from __future__ import annotations

from datetime import date


class RoomCheckError(Exception):
    """Base class for errors surfaced to callers."""

    status_code = 400
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"detail": self.message, "error": self.kind}


class ConfigurationError(RoomCheckError):
    """Missing room, inactive subject or unusable configuration."""

    status_code = 400
    kind = "configuration_error"


class ValidationFailed(RoomCheckError):
    """Request data violates a business rule (duplicate name, bad field)."""

    status_code = 400
    kind = "validation_failed"


class GateDenied(RoomCheckError):
    """Submission attempted outside every open inspection window."""

    status_code = 403
    kind = "gate_denied"

    def __init__(
        self,
        message: str,
        next_date: date | None = None,
        days_until: int | None = None,
    ):
        super().__init__(message)
        self.next_date = next_date
        self.days_until = days_until

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["next_date"] = self.next_date.isoformat() if self.next_date else None
        data["days_until"] = self.days_until
        return data


class NotFound(RoomCheckError):
    """Record, setting or subject does not exist."""

    status_code = 404
    kind = "not_found"


class DuplicateSubmission(RoomCheckError):
    """Subject already passed today."""

    status_code = 409
    kind = "duplicate_submission"


class ResubmissionNotAllowed(RoomCheckError):
    """Re-submission requested without a same-day FAIL to resubmit against."""

    status_code = 409
    kind = "resubmission_not_allowed"


class OracleFailure(RoomCheckError):
    """Scoring oracle failed and the fallback policy is disabled."""

    status_code = 503
    kind = "oracle_failure"
