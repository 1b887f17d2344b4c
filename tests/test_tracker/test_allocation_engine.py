"""Tests for AllocationEngine."""

from datetime import date, datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy.orm import Session

from worktrace.db.repositories import AllocationRepository
from worktrace.exceptions import AllocationNotFoundError
from worktrace.models.db import Allocation, WorkSession
from worktrace.tracker.allocation import (
    AllocationEngine,
    group_sessions_by_date,
    seconds_to_hours,
)

DAY = datetime(2025, 3, 10, tzinfo=timezone.utc)


def day_at(hour: int, minute: int = 0, days: int = 0) -> datetime:
    return DAY + timedelta(days=days, hours=hour, minutes=minute)


class TestSecondsToHours:
    @pytest.mark.parametrize(
        "seconds,hours",
        [(5400, 1.5), (5430, 1.51), (3150, 0.88), (17, 0.0), (18, 0.01), (0, 0.0)],
    )
    def test_rounds_half_up_to_two_decimals(self, seconds, hours):
        assert seconds_to_hours(seconds) == hours


class TestGroupSessionsByDate:
    def test_groups_by_start_date_in_timezone(self):
        late = WorkSession(start_at=day_at(23, 30), active_seconds=60)
        early = WorkSession(start_at=day_at(1, 0, days=1), active_seconds=60)

        utc = group_sessions_by_date([late, early], "UTC")
        tokyo = group_sessions_by_date([late, early], "Asia/Tokyo")

        assert set(utc) == {date(2025, 3, 10), date(2025, 3, 11)}
        assert set(tokyo) == {date(2025, 3, 11)}
        assert len(tokyo[date(2025, 3, 11)]) == 2


class TestAllocate:
    def test_same_day_sessions_become_one_allocation(
        self, db_session: Session, make_session, make_work_item
    ):
        sessions = [
            make_session(day_at(9), 1800),
            make_session(day_at(11), 900),
            make_session(day_at(14), 450),
        ]
        work_item = make_work_item(day_at(15))

        created = AllocationEngine(db_session, lookback_days=14).allocate(work_item)
        db_session.commit()

        assert len(created) == 1
        assert created[0].date == date(2025, 3, 10)
        assert created[0].hours == 0.88
        for work_session in sessions:
            db_session.refresh(work_session)
            assert work_session.is_allocated is True

    def test_one_allocation_per_date(
        self, db_session: Session, make_session, make_work_item
    ):
        make_session(day_at(9), 3600)
        make_session(day_at(9, days=1), 1800)
        work_item = make_work_item(day_at(12, days=1))

        created = AllocationEngine(db_session).allocate(work_item)

        assert [(a.date, a.hours) for a in created] == [
            (date(2025, 3, 10), 1.0),
            (date(2025, 3, 11), 0.5),
        ]

    def test_zero_hour_date_is_flagged_without_allocation(
        self, db_session: Session, make_session, make_work_item
    ):
        tiny = make_session(day_at(9), 10)
        make_session(day_at(9, days=1), 3600)
        work_item = make_work_item(day_at(12, days=1))

        created = AllocationEngine(db_session).allocate(work_item)
        db_session.commit()
        db_session.refresh(tiny)

        assert [a.date for a in created] == [date(2025, 3, 11)]
        assert tiny.is_allocated is True

    def test_nothing_to_allocate(self, db_session: Session, make_work_item):
        work_item = make_work_item(day_at(12))

        assert AllocationEngine(db_session).allocate(work_item) == []

    def test_window_starts_at_previous_work_item(
        self, db_session: Session, make_session, make_work_item
    ):
        make_work_item(day_at(10), external_id="a1")
        before = make_session(day_at(9), 1800)
        after = make_session(day_at(11), 1800)
        work_item = make_work_item(day_at(12), external_id="b2")

        created = AllocationEngine(db_session).allocate(work_item)
        db_session.commit()
        db_session.refresh(before)
        db_session.refresh(after)

        assert [a.hours for a in created] == [0.5]
        assert after.is_allocated is True
        assert before.is_allocated is False

    def test_lookback_ignores_stale_sessions(
        self, db_session: Session, make_session, make_work_item
    ):
        stale = make_session(day_at(9, days=-30), 3600)
        make_session(day_at(9), 3600)
        work_item = make_work_item(day_at(12))

        created = AllocationEngine(db_session, lookback_days=14).allocate(work_item)
        db_session.commit()
        db_session.refresh(stale)

        assert [a.date for a in created] == [date(2025, 3, 10)]
        assert stale.is_allocated is False

    def test_lookback_zero_claims_everything(
        self, db_session: Session, make_session, make_work_item
    ):
        make_session(day_at(9, days=-30), 3600)
        make_session(day_at(9), 3600)
        work_item = make_work_item(day_at(12))

        created = AllocationEngine(db_session, lookback_days=0).allocate(work_item)

        assert len(created) == 2

    def test_second_allocation_claims_nothing(
        self, db_session: Session, make_session, make_work_item
    ):
        make_session(day_at(9), 3600)
        engine = AllocationEngine(db_session)
        first = make_work_item(day_at(10), external_id="a1")
        assert len(engine.allocate(first)) == 1
        db_session.commit()

        # Explicitly naming the already-claimed session still yields nothing
        second = make_work_item(day_at(11), external_id="b2")
        claimed = db_session.query(WorkSession).one()
        assert engine.allocate(second, session_ids=[claimed.id]) == []

    def test_explicit_session_ids(
        self, db_session: Session, make_session, make_work_item
    ):
        chosen = make_session(day_at(9), 3600)
        other = make_session(day_at(11), 3600)
        work_item = make_work_item(day_at(12))

        created = AllocationEngine(db_session).allocate(
            work_item, session_ids=[chosen.id]
        )
        db_session.commit()
        db_session.refresh(other)

        assert [a.hours for a in created] == [1.0]
        assert other.is_allocated is False

    def test_empty_session_ids_allocates_nothing(
        self, db_session: Session, make_session, make_work_item
    ):
        session = make_session(day_at(9), 3600)
        work_item = make_work_item(day_at(12))

        created = AllocationEngine(db_session).allocate(work_item, session_ids=[])
        db_session.commit()
        db_session.refresh(session)

        assert created == []
        assert session.is_allocated is False

    def test_failure_rolls_back_allocations_and_flags(
        self, db_session: Session, make_session, make_work_item
    ):
        first = make_session(day_at(9), 3600)
        make_session(day_at(9, days=1), 3600)
        work_item = make_work_item(day_at(12, days=1))
        engine = AllocationEngine(db_session)
        real_create = engine.allocations.create_allocation
        calls = []

        def failing_create(**kwargs):
            calls.append(kwargs)
            if len(calls) == 2:
                raise RuntimeError("disk full")
            return real_create(**kwargs)

        with patch.object(engine.allocations, "create_allocation", side_effect=failing_create):
            with pytest.raises(RuntimeError, match="disk full"):
                engine.allocate(work_item)
        db_session.commit()
        db_session.refresh(first)

        assert db_session.query(Allocation).count() == 0
        assert first.is_allocated is False


class TestEdits:
    @pytest.fixture
    def allocation(self, db_session: Session, make_work_item) -> Allocation:
        work_item = make_work_item(day_at(12))
        allocation = AllocationRepository(db_session).create_allocation(
            work_item_id=work_item.id, date=date(2025, 3, 10), hours=1.25
        )
        db_session.commit()
        return allocation

    def test_update_hours_rounds(self, db_session: Session, allocation):
        updated = AllocationEngine(db_session).update_hours(allocation.id, 2.345)
        assert updated.hours == 2.35

    def test_update_hours_rejects_negative(self, db_session: Session, allocation):
        with pytest.raises(ValueError):
            AllocationEngine(db_session).update_hours(allocation.id, -1)

    def test_update_note_and_tag(self, db_session: Session, allocation):
        engine = AllocationEngine(db_session)
        engine.update_note(allocation.id, "pairing with ops")
        updated = engine.update_tag(allocation.id, "billing")

        assert updated.note == "pairing with ops"
        assert updated.tag == "billing"

    def test_unknown_allocation(self, db_session: Session):
        import uuid

        with pytest.raises(AllocationNotFoundError):
            AllocationEngine(db_session).update_note(uuid.uuid4(), "x")

    def test_most_recent_allocation(
        self, db_session: Session, allocation, sample_workspace
    ):
        recent = AllocationEngine(db_session).most_recent_allocation(sample_workspace.id)
        assert recent.id == allocation.id
