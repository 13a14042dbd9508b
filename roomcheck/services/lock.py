"""
Submission Lock

Redis-based per-subject lock so one subject cannot run two submissions
(and two oracle calls) at the same time.
"""

import logging
import uuid
from contextlib import contextmanager
from typing import Iterator, Optional

import redis

from roomcheck.config import get_settings
from roomcheck.errors import DuplicateSubmission

logger = logging.getLogger(__name__)
settings = get_settings()


class SubmissionLock:
    """
    SET NX EX lock keyed by subject.

    Keys:
    - roomcheck:submit:{subject_id} - random token of the current holder

    Redis being down never blocks a submission: the lock is skipped and the
    storage-level unique index still prevents a second PASS.
    """

    KEY_PREFIX = "roomcheck:submit"

    def __init__(
        self,
        client: Optional[redis.Redis] = None,
        ttl_seconds: Optional[int] = None,
        enabled: Optional[bool] = None,
    ):
        self._client = client
        self.ttl_seconds = ttl_seconds or settings.submission_lock_ttl_seconds
        self.enabled = settings.submission_lock_enabled if enabled is None else enabled

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(settings.redis_url, decode_responses=True)
        return self._client

    def _key(self, subject_id: str) -> str:
        return f"{self.KEY_PREFIX}:{subject_id}"

    def acquire(self, subject_id: str) -> Optional[str]:
        """
        Try to take the lock.

        Returns:
            The holder token, ``""`` when locking was skipped, or None when
            another request holds the lock
        """
        if not self.enabled:
            return ""
        token = uuid.uuid4().hex
        try:
            acquired = self.client.set(self._key(subject_id), token, nx=True, ex=self.ttl_seconds)
        except redis.RedisError as e:
            logger.warning("Redis unavailable, submitting without lock: %s", e)
            return ""
        return token if acquired else None

    def release(self, subject_id: str, token: str) -> None:
        if not token:
            return
        key = self._key(subject_id)
        try:
            if self.client.get(key) == token:
                self.client.delete(key)
        except redis.RedisError as e:
            logger.warning("Failed to release submission lock for %s: %s", subject_id, e)

    @contextmanager
    def hold(self, subject_id: str) -> Iterator[None]:
        """
        Hold the lock for the duration of the block.

        Raises:
            DuplicateSubmission: another submission for this subject is in
                progress
        """
        token = self.acquire(subject_id)
        if token is None:
            logger.info("Submission already in progress for %s", subject_id)
            raise DuplicateSubmission("A submission is already in progress")
        try:
            yield
        finally:
            self.release(subject_id, token)

    def health_check(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.RedisError:
            return False


# Singleton instance
_submission_lock: SubmissionLock | None = None


def get_submission_lock() -> SubmissionLock:
    """Get or create submission lock singleton."""
    global _submission_lock
    if _submission_lock is None:
        _submission_lock = SubmissionLock()
    return _submission_lock
