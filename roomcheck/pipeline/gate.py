"""
Time Window Gate

Decides whether a submission is permitted right now, given the configured
inspection policies.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Sequence

from roomcheck.models.setting import InspectionSetting

logger = logging.getLogger(__name__)


@dataclass
class GateDecision:
    """Outcome of a gate evaluation."""
    allowed: bool
    message: str
    policy: Optional[InspectionSetting] = None  # Policy that decided, if any
    next_date: Optional[date] = None
    days_until: Optional[int] = None


class TimeWindowGate:
    """
    Time-window admission check.

    Precedence:
    - A date-pinned policy for today decides alone
    - Otherwise weekday policies for today, or the default policy
    - No enabled policy at all: allowed (a missing policy table must never
      block every submission)
    """

    def evaluate(self, now: datetime, policies: Sequence[InspectionSetting]) -> GateDecision:
        try:
            return self._evaluate(now, policies)
        except Exception:
            logger.exception("Gate evaluation failed, allowing submission")
            return GateDecision(allowed=True, message="Inspection time could not be verified")

    def _evaluate(self, now: datetime, policies: Sequence[InspectionSetting]) -> GateDecision:
        active = [p for p in policies if p.is_enabled]
        if not active:
            logger.info("No inspection policy configured, gate open")
            return GateDecision(allowed=True, message="No inspection policy configured")

        today = now.date()
        clock = now.time()

        pinned_today = [p for p in active if p.inspection_date == today]
        if pinned_today:
            policy = pinned_today[0]
            if policy.is_within_window(clock):
                logger.info("Gate open - policy %s (date-pinned)", policy.setting_name)
                return GateDecision(allowed=True, message="Inspection is open", policy=policy)
            return GateDecision(
                allowed=False,
                message=f"Inspection is closed. Today's inspection time: {policy.window_label}",
                policy=policy,
            )

        candidates = [p for p in active if p.applies_on_weekday(today)]
        if not candidates:
            default = next(
                (p for p in active if p.is_default and p.inspection_date is None),
                None,
            )
            if default is not None:
                candidates = [default]

        for policy in candidates:
            if policy.is_within_window(clock):
                logger.info("Gate open - policy %s (weekday)", policy.setting_name)
                return GateDecision(allowed=True, message="Inspection is open", policy=policy)

        upcoming = self.next_scheduled(today, active)
        if upcoming is not None:
            days = upcoming.days_until(today)
            logger.info("Gate closed - next inspection on %s", upcoming.inspection_date)
            return GateDecision(
                allowed=False,
                message=_next_message(upcoming, days),
                policy=upcoming,
                next_date=upcoming.inspection_date,
                days_until=days,
            )

        if candidates:
            first = candidates[0]
            return GateDecision(
                allowed=False,
                message=f"Inspection is closed. Inspection time: {first.window_label}",
                policy=first,
            )

        return GateDecision(allowed=False, message="No inspection is scheduled today")

    @staticmethod
    def next_scheduled(
        today: date, policies: Sequence[InspectionSetting]
    ) -> Optional[InspectionSetting]:
        """Earliest enabled date-pinned policy on or after ``today``."""
        upcoming = [
            p for p in policies
            if p.is_enabled and p.inspection_date is not None and p.inspection_date >= today
        ]
        if not upcoming:
            return None
        return min(upcoming, key=lambda p: p.inspection_date)


def _next_message(policy: InspectionSetting, days: int) -> str:
    if days == 0:
        return f"Today's inspection time: {policy.window_label}"
    if days == 1:
        return f"Next inspection: tomorrow {policy.window_label}"
    return (
        f"Next inspection: {policy.inspection_date.isoformat()} "
        f"(in {days} days) {policy.window_label}"
    )
