from datetime import timedelta

import pytest
from sqlalchemy import func, select

from shiftwatch.core.errors import ConflictError, NotFoundError, ValidationError
from shiftwatch.models import Attendance, EventKind, Shift, ShiftEvent
from shiftwatch.services import shifts as store
from shiftwatch.services.ledger import EventLedger

from conftest import TZ, local


def _count(db, model):
    return db.scalar(select(func.count()).select_from(model))


def test_create_shift_adds_empty_attendance(db, make_shift):
    shift = make_shift(local(10), local(18))

    assert shift.id is not None
    assert shift.start_at == local(10)
    assert shift.end_local.hour == 18
    state = store.get_attendance(db, shift.id)
    assert state.clock_in_at is None and state.clock_out_at is None
    assert _count(db, Attendance) == 1


@pytest.mark.parametrize("end_hour", [10, 9])
def test_create_shift_rejects_end_not_after_start(db, make_shift, end_hour):
    with pytest.raises(ValidationError):
        make_shift(local(10), local(end_hour))
    assert _count(db, Shift) == 0
    assert _count(db, Attendance) == 0


def test_create_shift_rejects_unknown_zone(db, make_shift):
    with pytest.raises(ValidationError):
        make_shift(local(10), local(18), tz="Nowhere/Town")
    assert _count(db, Shift) == 0


def test_delete_missing_shift_reports_not_found(db, make_shift):
    make_shift(local(10), local(18))

    assert store.delete_shift(db, 999) == 0
    with pytest.raises(NotFoundError):
        store.remove_shift(db, 999)
    assert _count(db, Shift) == 1


def test_delete_shift_cascades_attendance_and_ledger(db, make_shift):
    shift = make_shift(local(10), local(18))
    store.set_clock_in(db, shift.id, local(9, 55))

    assert store.delete_shift(db, shift.id) == 1
    assert _count(db, Shift) == 0
    assert _count(db, Attendance) == 0
    assert _count(db, ShiftEvent) == 0


def test_shift_ids_are_not_reused(db, make_shift):
    make_shift(local(8), local(9))
    second = make_shift(local(10), local(11))
    store.delete_shift(db, second.id)

    third = make_shift(local(12), local(13))
    assert third.id > second.id


def test_find_shifts_in_window_is_inclusive_and_ordered(db, make_shift):
    late = make_shift(local(14), local(15))
    early = make_shift(local(10), local(11))
    make_shift(local(16), local(17))

    got = store.find_shifts_in_window(db, local(10), local(14))
    assert [s.id for s in got] == [early.id, late.id]


def test_nearest_shift_today_picks_closest(db, make_shift):
    morning = make_shift(local(8), local(12))
    evening = make_shift(local(18), local(22))
    make_shift(local(13), local(14), user_id="someone-else")

    assert store.find_nearest_shift_for_user_today(db, "u1", local(11)).id == morning.id
    assert store.find_nearest_shift_for_user_today(db, "u1", local(16)).id == evening.id


def test_nearest_shift_ignores_other_days(db, make_shift):
    make_shift(local(23, day=18), local(23, 30, day=18))
    make_shift(local(0, 30, day=20), local(1, day=20))

    assert store.find_nearest_shift_for_user_today(db, "u1", local(23, 50)) is None


def test_nearest_shift_uses_the_shift_zone_for_today(db, make_shift):
    # 2026-10-19 22:00 in New York is already the 20th in Zagreb
    ny = make_shift(local(22, tz="America/New_York"), local(23, tz="America/New_York"), tz="America/New_York")

    now = local(21, tz="America/New_York")
    assert store.find_nearest_shift_for_user_today(db, "u1", now).id == ny.id
    # the next morning in New York is a different day for that shift
    assert store.find_nearest_shift_for_user_today(db, "u1", now + timedelta(hours=10)) is None


def test_set_clock_in_premarks_remind_and_start(db, make_shift):
    shift = make_shift(local(10), local(18))
    store.set_clock_in(db, shift.id, local(9, 30))

    ledger = EventLedger(db)
    assert ledger.has_fired(shift.id, EventKind.REMIND)
    assert ledger.has_fired(shift.id, EventKind.START)
    assert not ledger.has_fired(shift.id, EventKind.LATEFINE)
    assert store.get_attendance(db, shift.id).clock_in_at == local(9, 30)


def test_set_clock_in_is_write_once(db, make_shift):
    shift = make_shift(local(10), local(18))
    store.set_clock_in(db, shift.id, local(10, 1))

    with pytest.raises(ConflictError, match="Already clocked in"):
        store.set_clock_in(db, shift.id, local(10, 2))
    assert store.get_attendance(db, shift.id).clock_in_at == local(10, 1)


def test_set_clock_in_writes_through_the_given_ledger(db, make_shift):
    class RecordingLedger:
        def __init__(self):
            self.marks = []

        def mark_fired(self, shift_id, kind, when):
            self.marks.append((shift_id, kind, when))
            return True

    shift = make_shift(local(10), local(18))
    ledger = RecordingLedger()
    store.set_clock_in(db, shift.id, local(9, 58), ledger=ledger)

    assert ledger.marks == [
        (shift.id, EventKind.REMIND, local(9, 58)),
        (shift.id, EventKind.START, local(9, 58)),
    ]


def test_active_channel_and_active_shift(db, make_shift):
    shift = make_shift(local(10), local(18), channel_id="room")
    assert not store.is_channel_active(db, "room")
    assert store.find_active_shift_for_user(db, "u1") is None

    store.set_clock_in(db, shift.id, local(10))
    assert store.is_channel_active(db, "room")
    assert not store.is_channel_active(db, "other-room")
    assert store.find_active_shift_for_user(db, "u1").id == shift.id

    store.set_clock_out(db, shift.id, local(18))
    assert not store.is_channel_active(db, "room")
    assert store.find_active_shift_for_user(db, "u1") is None
    state = store.get_attendance(db, shift.id)
    assert not state.active and state.clocked_in


def test_latest_attendance_row_is_authoritative(db, make_shift):
    shift = make_shift(local(10), local(18))
    store.set_clock_in(db, shift.id, local(10))
    store.set_clock_out(db, shift.id, local(12))
    db.add(Attendance(user_id="u1", shift_id=shift.id))
    db.commit()

    state = store.get_attendance(db, shift.id)
    assert state.clock_in_at is None and state.clock_out_at is None


def test_adhoc_shift_starts_clocked_in(db):
    shift = store.create_adhoc_shift(db, guild_id="g1", user_id="u2", channel_id="c9", tz=TZ, now=local(13))

    assert shift.end_at is None and shift.model is None and shift.voice_channel_id is None
    assert store.get_attendance(db, shift.id).active
    assert store.is_channel_active(db, "c9")
