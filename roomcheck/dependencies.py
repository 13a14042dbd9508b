"""
API Dependencies

FastAPI providers wiring sessions, external clients and pipeline stages.
"""

from functools import lru_cache

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from roomcheck.database import get_db
from roomcheck.pipeline.scorer import ContentScorer
from roomcheck.services.directory import DirectoryClient
from roomcheck.services.lock import SubmissionLock, get_submission_lock
from roomcheck.services.oracle import OracleClient
from roomcheck.services.orchestrator import SubmissionOrchestrator
from roomcheck.services.settings_store import SettingsStore
from roomcheck.services.storage import StorageService, get_storage_service


@lru_cache
def get_directory() -> DirectoryClient:
    return DirectoryClient()


@lru_cache
def get_oracle() -> OracleClient:
    return OracleClient()


def get_scorer(oracle: OracleClient = Depends(get_oracle)) -> ContentScorer:
    return ContentScorer(oracle=oracle)


def get_subject_id(x_subject_id: str | None = Header(default=None)) -> str:
    """Caller identity, set by the authenticating gateway."""
    if not x_subject_id or not x_subject_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Subject-Id header",
        )
    return x_subject_id.strip()


def get_settings_store(db: AsyncSession = Depends(get_db)) -> SettingsStore:
    return SettingsStore(db)


def get_orchestrator(
    db: AsyncSession = Depends(get_db),
    directory: DirectoryClient = Depends(get_directory),
    storage: StorageService = Depends(get_storage_service),
    scorer: ContentScorer = Depends(get_scorer),
    lock: SubmissionLock = Depends(get_submission_lock),
) -> SubmissionOrchestrator:
    return SubmissionOrchestrator(
        db,
        identity=directory,
        roster=directory,
        storage=storage,
        scorer=scorer,
        lock=lock,
    )
