"""
RoomCheck Services

Persistence and external service integrations. The orchestrator lives in
``roomcheck.services.orchestrator`` and is imported from there.
"""

from .directory import DirectoryClient, SubjectProfile, Occupant
from .lock import SubmissionLock
from .oracle import OracleClient, OracleError
from .records import RecordStore
from .settings_store import SettingsStore
from .storage import StorageService

__all__ = [
    "DirectoryClient",
    "SubjectProfile",
    "Occupant",
    "SubmissionLock",
    "OracleClient",
    "OracleError",
    "RecordStore",
    "SettingsStore",
    "StorageService",
]
