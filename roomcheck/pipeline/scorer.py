"""
Content Scorer

Asks the vision oracle to grade a room photo and turns its free-text answer
into a score. When the oracle is unavailable or answers with something
unusable, a configurable fallback policy decides.
"""

import logging
import random
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

from roomcheck import metrics
from roomcheck.config import Settings, get_settings
from roomcheck.prompts import get_prompt
from roomcheck.services.oracle import OracleClient, OracleError

logger = logging.getLogger(__name__)

MAX_SCORE = 10

SCORE_PATTERN = re.compile(
    r"(?:score|점수)\s*[:：]\s*(-?\d+)\s*(?:점|/\s*10|points?)?",
    re.IGNORECASE,
)

FALLBACK_RATIONALES = (
    "The room looks neatly organized overall.",
    "Belongings are well arranged and the room is clean.",
    "The bedding is tidy and the floor is clean.",
    "Overall the room appears to be a pleasant living space.",
    "The room is well cleaned and organized.",
)

PARTIAL_SUFFIX = " (partial analysis)"


@dataclass(frozen=True)
class Valid:
    """The photo shows a room and was graded."""
    score: int


@dataclass(frozen=True)
class NotSubject:
    """The photo is not a dormitory room."""
    reason: str


Verdict = Union[Valid, NotSubject]


@dataclass
class ScoreResult:
    """Outcome of scoring one photo."""
    score: int
    rationale: str
    success: bool = True
    not_subject: bool = False
    fallback: bool = False


def _any_of(*phrases: str) -> Callable[[str], bool]:
    return lambda text: any(p in text for p in phrases)


# Checked in order against the lower-cased answer; any hit means "not a room"
NOT_SUBJECT_PREDICATES: list[Callable[[str], bool]] = [
    _any_of("cannot evaluate", "unable to evaluate", "can't evaluate"),
    _any_of("not a room", "not a dormitory", "not a dorm"),
    _any_of("screenshot", "screen shot"),
    _any_of("평가 불가", "평가불가", "검사불가", "검사 불가"),
    _any_of("방 사진이 아", "방사진이 아"),
    _any_of("스크린샷", "영화", "드라마", "애니메이션", "만화", "일러스트"),
    _any_of("tv 화면", "모니터 화면", "컴퓨터 화면"),
    _any_of("평가할 수 없", "점수를 매길 수 없"),
    lambda text: "점수" in text and "불가" in text,
]

# First matching row names the reason shown to the student
NOT_SUBJECT_REASONS: list[tuple[tuple[str, ...], str]] = [
    (("game", "screenshot", "screen shot", "게임", "스크린샷"),
     "Game screenshots are not accepted as inspection photos."),
    (("movie", "drama", "film", "영화", "드라마"),
     "Movie or drama scenes are not accepted as inspection photos."),
    (("drawing", "illustration", "cartoon", "anime", "만화", "일러스트", "애니메이션"),
     "Drawings and illustrations are not accepted as inspection photos."),
    (("bathroom", "shower", "toilet", "화장실", "샤워"),
     "Bathroom or shower photos are not accepted for inspection."),
    (("hallway", "corridor", "stair", "복도", "계단"),
     "Hallway or staircase photos are not accepted for inspection."),
    (("outdoor", "outside", "야외", "외부", "옥외"),
     "Outdoor photos are not accepted for inspection."),
    (("selfie", "셀카"),
     "Selfies that do not show the room are not accepted for inspection."),
    (("tv", "monitor", "computer screen", "모니터", "컴퓨터 화면"),
     "Photos of screens are not accepted for inspection."),
    (("internet", "download", "인터넷", "다운로드"),
     "Images downloaded from the internet are not accepted for inspection."),
]

GENERIC_NOT_SUBJECT = "This is not a dormitory room photo. Please submit a photo of your actual room."


def is_not_subject(text: str) -> bool:
    lowered = text.lower()
    return any(predicate(lowered) for predicate in NOT_SUBJECT_PREDICATES)


def classify_not_subject(text: str) -> str:
    lowered = text.lower()
    for keywords, reason in NOT_SUBJECT_REASONS:
        if any(k in lowered for k in keywords):
            return reason
    return GENERIC_NOT_SUBJECT


def parse_score(text: str) -> Optional[int]:
    """First ``score: N`` in the text, clamped to 0..10."""
    match = SCORE_PATTERN.search(text)
    if not match:
        return None
    return max(0, min(MAX_SCORE, int(match.group(1))))


def parse_verdict(text: str) -> Optional[Verdict]:
    """
    Interpret an oracle answer.

    A not-a-room phrase wins over any numeric score. Returns None when the
    text contains neither.
    """
    if is_not_subject(text):
        return NotSubject(classify_not_subject(text))
    score = parse_score(text)
    if score is None:
        return None
    return Valid(score)


def extract_rationale(text: str, truncated: bool = False) -> str:
    rationale = SCORE_PATTERN.sub("", text, count=1).strip()
    if not rationale:
        rationale = "Analysis complete."
    if truncated:
        rationale += PARTIAL_SUFFIX
    return rationale


@dataclass
class ScoringPolicy:
    """
    What to do when no usable score comes back from the oracle.

    Disabled: score 0 and ``success=False`` (the caller surfaces an error).
    Enabled: a random score in ``[band_min, band_max]`` with a canned
    rationale.
    """
    fallback_enabled: bool = True
    band_min: int = 6
    band_max: int = 8
    rng: random.Random = field(default_factory=random.Random)

    @classmethod
    def from_settings(cls, settings: Settings, rng: Optional[random.Random] = None) -> "ScoringPolicy":
        return cls(
            fallback_enabled=settings.fallback_enabled,
            band_min=settings.fallback_score_min,
            band_max=settings.fallback_score_max,
            rng=rng or random.Random(),
        )

    def fallback(self, reason: str) -> ScoreResult:
        if not self.fallback_enabled:
            logger.warning("Fallback disabled, scoring failed: %s", reason)
            return ScoreResult(score=0, rationale=reason, success=False)

        score = self.rng.randint(self.band_min, self.band_max)
        rationale = self.rng.choice(FALLBACK_RATIONALES)
        metrics.fallback_scores_total.inc()
        logger.info("Fallback score %d applied (%s)", score, reason)
        return ScoreResult(score=score, rationale=rationale, success=True, fallback=True)


class ContentScorer:
    """
    Room photo scoring via the vision oracle.

    Single-photo mode grades the submission alone; comparison mode sends the
    building's reference photo first and the submission second. Either way
    exactly one oracle call is made.
    """

    def __init__(
        self,
        oracle: Optional[OracleClient] = None,
        policy: Optional[ScoringPolicy] = None,
    ):
        settings = get_settings()
        self.oracle = oracle or OracleClient(settings)
        self.policy = policy or ScoringPolicy.from_settings(settings)

    async def score(self, photo_bytes: bytes, reference: Optional[bytes] = None) -> ScoreResult:
        if not self.oracle.configured:
            logger.warning("No oracle API key configured, using fallback policy")
            metrics.oracle_requests_total.labels(outcome="unconfigured").inc()
            return self.policy.fallback("Scoring service is not configured")

        mode = "comparison" if reference else "single"
        images = [reference, photo_bytes] if reference else [photo_bytes]
        logger.info("Scoring photo (%s mode, %d bytes)", mode, len(photo_bytes))

        started = time.perf_counter()
        try:
            response = await self.oracle.generate(get_prompt(mode), images)
        except OracleError as e:
            logger.error("Oracle call failed: %s", e)
            metrics.oracle_requests_total.labels(outcome="error").inc()
            return self.policy.fallback(str(e))
        finally:
            metrics.oracle_latency_seconds.observe(time.perf_counter() - started)

        try:
            result = self.interpret(response)
        except Exception as e:
            logger.exception("Could not interpret oracle response")
            result = self.policy.fallback(f"Could not interpret oracle response: {e}")

        metrics.oracle_requests_total.labels(
            outcome="fallback" if result.fallback else "ok"
        ).inc()
        return result

    def interpret(self, response: dict[str, Any]) -> ScoreResult:
        """Map a generateContent response to a ScoreResult."""
        if "error" in response:
            message = (response.get("error") or {}).get("message", "unknown error")
            logger.error("Oracle returned an error: %s", message)
            return self.policy.fallback(f"Scoring service error: {message}")

        block_reason = (response.get("promptFeedback") or {}).get("blockReason")
        if block_reason:
            logger.error("Oracle blocked the request: %s", block_reason)
            return self.policy.fallback(f"Scoring was refused ({block_reason})")

        candidates = response.get("candidates") or []
        if not candidates:
            logger.error("Oracle response has no candidates")
            return self.policy.fallback("No scoring result was returned")

        candidate = candidates[0]
        finish_reason = candidate.get("finishReason")
        truncated = finish_reason == "MAX_TOKENS"
        if finish_reason and finish_reason not in ("STOP", "MAX_TOKENS"):
            logger.warning("Oracle finished with %s", finish_reason)
            return self.policy.fallback(f"Scoring did not complete ({finish_reason})")

        parts = (candidate.get("content") or {}).get("parts") or []
        text = parts[0].get("text", "") if parts else ""
        if not text.strip():
            logger.error("Oracle response has no text (finishReason=%s)", finish_reason)
            return self.policy.fallback("Scoring result was empty")

        logger.info("Oracle answer: %s", text)
        verdict = parse_verdict(text)

        if isinstance(verdict, NotSubject):
            logger.warning("Photo is not a room: %s", verdict.reason)
            return ScoreResult(
                score=0,
                rationale=f"Cannot evaluate: {verdict.reason}",
                not_subject=True,
            )
        if isinstance(verdict, Valid):
            return ScoreResult(score=verdict.score, rationale=extract_rationale(text, truncated))

        logger.warning("No score found in oracle answer (truncated=%s)", truncated)
        return self.policy.fallback("Scoring result could not be parsed")
