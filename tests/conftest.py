"""
Shared fixtures: a throwaway SQLite database, in-memory fakes for the
external collaborators and a JPEG builder with EXIF tags.
"""

import io
import os
from datetime import date, datetime, time
from typing import Optional

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("GEMINI_API_KEY", "")

import pytest
import redis
from PIL import Image
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from roomcheck.database import Base
from roomcheck.models import InspectionSetting
from roomcheck.pipeline.scorer import ScoreResult
from roomcheck.services.directory import Occupant, SubjectProfile

INSPECTION_DAY = date(2024, 5, 14)  # a Tuesday


def at(hour: int, minute: int = 0, day: date = INSPECTION_DAY) -> datetime:
    return datetime.combine(day, time(hour, minute))


def make_photo(taken_at: Optional[datetime] = None, software: Optional[str] = None) -> bytes:
    """Small JPEG with optional IFD0 DateTime/Software tags."""
    image = Image.new("RGB", (32, 32), "white")
    exif = Image.Exif()
    if taken_at is not None:
        exif[0x0132] = taken_at.strftime("%Y:%m:%d %H:%M:%S")
    if software is not None:
        exif[0x0131] = software

    buf = io.BytesIO()
    if len(exif):
        image.save(buf, "JPEG", exif=exif)
    else:
        image.save(buf, "JPEG")
    return buf.getvalue()


def make_policy(**overrides) -> InspectionSetting:
    """Detached policy with every column set (column defaults only apply on flush)."""
    fields = dict(
        setting_name="Default",
        start_time=time(21, 0),
        end_time=time(23, 59),
        inspection_date=None,
        applicable_days="ALL",
        is_enabled=True,
        is_default=True,
        exif_validation_enabled=True,
        exif_time_tolerance_minutes=10,
        gps_validation_enabled=False,
        dormitory_latitude=None,
        dormitory_longitude=None,
        gps_radius_meters=100,
        room_photo_validation_enabled=True,
    )
    fields.update(overrides)
    return InspectionSetting(**fields)


class FakeStorage:
    """Blob store keeping everything in a dict."""

    def __init__(self):
        self.blobs: dict[str, bytes] = {}
        self.references: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self._counter = 0

    def store(self, data: bytes, category: str, content_type: str = "image/jpeg") -> str:
        self._counter += 1
        key = f"{category}/{self._counter}.jpg"
        self.blobs[key] = data
        return key

    def delete(self, key: str) -> bool:
        self.deleted.append(key)
        return self.blobs.pop(key, None) is not None

    def reference_photo(self, building: Optional[str]) -> Optional[bytes]:
        if building and building in self.references:
            return self.references[building]
        return self.references.get("default")


class FakeDirectory:
    """Identity store and building roster backed by dicts."""

    def __init__(self):
        self.profiles: dict[str, SubjectProfile] = {}
        self.occupants: dict[str, list[Occupant]] = {}

    def add(self, subject_id: str, name: str = "", room: Optional[str] = None,
            building: Optional[str] = "A", active: bool = True) -> SubjectProfile:
        profile = SubjectProfile(subject_id, name or subject_id, room, building, active)
        self.profiles[subject_id] = profile
        if building and room:
            self.occupants.setdefault(building, []).append(Occupant(subject_id, profile.name, room))
        return profile

    async def get_subject_profile(self, subject_id: str) -> Optional[SubjectProfile]:
        return self.profiles.get(subject_id)

    async def list_occupants(self, building: str) -> list[Occupant]:
        return list(self.occupants.get(building, []))


class FakeScorer:
    """Returns a fixed result and remembers every call."""

    def __init__(self, result: Optional[ScoreResult] = None):
        self.result = result or ScoreResult(score=8, rationale="Tidy and clean.")
        self.calls: list[tuple[bytes, Optional[bytes]]] = []

    async def score(self, photo_bytes: bytes, reference: Optional[bytes] = None) -> ScoreResult:
        self.calls.append((photo_bytes, reference))
        return self.result


class FakeRedis:
    """Just enough of redis.Redis for the submission lock."""

    def __init__(self, fail: bool = False):
        self.data: dict[str, str] = {}
        self.fail = fail

    def _check(self):
        if self.fail:
            raise redis.ConnectionError("redis down")

    def set(self, key, value, nx=False, ex=None):
        self._check()
        if nx and key in self.data:
            return None
        self.data[key] = value
        return True

    def get(self, key):
        self._check()
        return self.data.get(key)

    def delete(self, key):
        self._check()
        return 1 if self.data.pop(key, None) is not None else 0

    def ping(self):
        self._check()
        return True


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'roomcheck.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db(engine):
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def directory():
    return FakeDirectory()


@pytest.fixture
def scorer():
    return FakeScorer()


@pytest.fixture
def fake_redis():
    return FakeRedis()
