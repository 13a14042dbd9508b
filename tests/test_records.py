"""
Record store tests.
"""

import pytest

from roomcheck.errors import DuplicateSubmission, NotFound, ValidationFailed
from roomcheck.models import InspectionRecord, InspectionStatus
from roomcheck.services.directory import Occupant
from roomcheck.services.records import NOT_SUBMITTED, RecordStore, floor_of
from tests.conftest import INSPECTION_DAY, at


def make_record(subject_id: str = "s1", status: str = "PASS", score: int = 8,
                hour: int = 22, minute: int = 0, **overrides) -> InspectionRecord:
    moment = at(hour, minute)
    fields = dict(
        subject_id=subject_id,
        room_number="305",
        building="A",
        image_path=f"inspections/{subject_id}-{hour}{minute}.jpg",
        score=score,
        status=status,
        rationale="ok",
        is_re_inspection=False,
        inspection_date=moment,
        inspection_day=moment.date(),
    )
    fields.update(overrides)
    return InspectionRecord(**fields)


class TestFloor:
    @pytest.mark.parametrize("room, floor", [
        ("305", 3),
        ("1203", 12),
        ("12", 1),
        ("7", 7),
        ("B-402", 4),
        ("Lounge", None),
        ("", None),
    ])
    def test_floor_of(self, room, floor):
        assert floor_of(room) == floor


class TestRecordStore:
    async def test_create_and_find_latest(self, db):
        store = RecordStore(db)
        await store.create(make_record(status="FAIL", score=3, hour=21))
        await store.create(make_record(status="FAIL", score=4, hour=22))
        await db.commit()

        latest = await store.find_today("s1", INSPECTION_DAY)
        assert latest.score == 4
        assert await store.find_today("s2", INSPECTION_DAY) is None

    async def test_second_pass_same_day_is_rejected(self, db):
        store = RecordStore(db)
        await store.create(make_record())
        await db.commit()

        with pytest.raises(DuplicateSubmission):
            await store.create(make_record(hour=23))

        assert await store.count() == 1

    async def test_get_missing(self, db):
        with pytest.raises(NotFound):
            await RecordStore(db).get(404)

    async def test_set_status_is_idempotent(self, db):
        store = RecordStore(db)
        record = await store.create(make_record(status="FAIL", score=3))
        await db.commit()

        first = await store.set_status(record.id, InspectionStatus.PASS, "looks fine")
        second = await store.set_status(record.id, InspectionStatus.PASS, "looks fine")
        await db.commit()

        assert first.status == second.status == "PASS"
        assert second.admin_comment == "looks fine"
        assert await store.count() == 1

    async def test_manual_pass_conflicting_with_existing_pass(self, db):
        store = RecordStore(db)
        await store.create(make_record(status="PASS", hour=21))
        failed = await store.create(make_record(status="FAIL", score=2, hour=22))
        await db.commit()

        with pytest.raises(DuplicateSubmission):
            await store.set_status(failed.id, InspectionStatus.PASS, "override")

    async def test_update_fields(self, db):
        store = RecordStore(db)
        record = await store.create(make_record(status="FAIL", score=3))
        await db.commit()

        updated = await store.update_fields(record.id, score=7, status="pass", rationale=None)
        assert updated.score == 7
        assert updated.status == "PASS"
        assert updated.rationale == "ok"

        with pytest.raises(ValidationFailed):
            await store.update_fields(record.id, score=11)
        with pytest.raises(ValidationFailed):
            await store.update_fields(record.id, status="MAYBE")
        with pytest.raises(ValidationFailed):
            await store.update_fields(record.id, subject_id="s9")

    async def test_delete(self, db):
        store = RecordStore(db)
        record = await store.create(make_record())
        await db.commit()

        deleted = await store.delete(record.id)
        assert deleted.image_path == record.image_path
        with pytest.raises(NotFound):
            await store.get(record.id)

    async def test_lists(self, db):
        store = RecordStore(db)
        await store.create(make_record("s1", status="FAIL", score=2))
        await store.create(make_record("s2"))
        await db.commit()

        assert [r.subject_id for r in await store.list_for_subject("s1")] == ["s1"]
        assert len(await store.list_by_date(INSPECTION_DAY)) == 2
        assert len(await store.list_all(limit=1)) == 1

    async def test_statistics(self, db):
        store = RecordStore(db)
        await store.create(make_record("s1", status="FAIL", score=2, hour=21))
        await store.create(make_record("s1", status="PASS", score=8, hour=22, is_re_inspection=True))
        await store.create(make_record("s2", status="FAIL", score=4))
        await db.commit()

        stats = await store.statistics(INSPECTION_DAY)
        assert stats["total"] == 3
        assert stats["passed"] == 1
        assert stats["failed"] == 2
        assert stats["re_inspections"] == 1
        assert stats["pass_rate"] == pytest.approx(33.3)

    async def test_statistics_empty(self, db):
        stats = await RecordStore(db).statistics()
        assert stats["total"] == 0
        assert stats["pass_rate"] == 0.0


class TestBuildingStatus:
    async def test_matrix(self, db):
        store = RecordStore(db)
        await store.create(make_record("s1", status="FAIL", score=2, hour=21))
        await store.create(make_record("s1", status="PASS", score=9, hour=22))
        await store.create(make_record("s2", status="FAIL", score=3, room_number="1203"))
        await db.commit()

        roster = [
            Occupant("s1", "Kim", "305"),
            Occupant("s3", "Lee", "305"),
            Occupant("s2", "Park", "1203"),
            Occupant("s4", "Choi", "Lounge"),
        ]
        status = await store.building_status("A", INSPECTION_DAY, roster)

        assert status["building"] == "A"
        assert status["date"] == "2024-05-14"
        assert list(status["floors"]) == [3, 12]

        room = status["floors"][3]["305"]
        assert room[0] == {"subject_id": "s1", "name": "Kim", "status": "PASS", "score": 9}
        assert room[1] == {"subject_id": "s3", "name": "Lee", "status": NOT_SUBMITTED, "score": None}
        assert status["floors"][12]["1203"][0]["status"] == "FAIL"

        assert status["total_occupants"] == 3
        assert status["submitted"] == 2
        assert status["passed"] == 1
        assert status["failed"] == 1

    async def test_empty_roster(self, db):
        status = await RecordStore(db).building_status("B", INSPECTION_DAY, [])
        assert status["floors"] == {}
        assert status["total_occupants"] == 0
