import threading

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from shiftwatch.core.db import Base
from shiftwatch.core.errors import ConflictError, ValidationError
from shiftwatch.models import Shift
from shiftwatch.services import attendance
from shiftwatch.services import shifts as store
from shiftwatch.services.notify import VoiceTarget
from shiftwatch.services.settings_store import RuntimeSettings

from conftest import local


def _clock_in(db, sink, now, *, user_id="u1", channel_id="c1"):
    return attendance.clock_in(db, sink, sink, user_id=user_id, channel_id=channel_id, guild_id="g1", now=now)


def test_clock_in_on_time(db, sink, make_shift):
    shift = make_shift(local(10), local(18))

    res = _clock_in(db, sink, local(10))

    assert res.shift.id == shift.id
    assert not res.adhoc
    assert res.late_minutes == 0
    assert res.note == "On time"
    assert store.get_attendance(db, shift.id).clock_in_at == local(10)


def test_clock_in_early_is_on_time(db, sink, make_shift):
    make_shift(local(10), local(18))
    res = _clock_in(db, sink, local(9, 40))
    assert res.late_minutes < 0
    assert res.note == "On time"


@pytest.mark.parametrize(
    "now, minutes",
    [(local(10, 7), 7), (local(10, 7, 59), 7), (local(10, 0, 59), 0), (local(11, 30), 90)],
)
def test_clock_in_late_reports_whole_minutes(db, sink, make_shift, now, minutes):
    make_shift(local(10), local(18))
    res = _clock_in(db, sink, now)
    assert res.late_minutes == minutes
    assert res.note == (f"Late: {minutes} min" if minutes > 0 else "On time")


def test_clock_in_twice_is_rejected(db, sink, make_shift):
    shift = make_shift(local(10), local(18))
    _clock_in(db, sink, local(10))

    with pytest.raises(ConflictError, match="Already clocked in"):
        _clock_in(db, sink, local(10, 5))
    assert store.get_attendance(db, shift.id).clock_in_at == local(10)


def test_clock_in_posts_notice_renames_voice_and_logs(db, sink, make_shift):
    RuntimeSettings(db).set_logs_channel_id("logs")
    sink.display_names["u1"] = "Mia"
    make_shift(local(10), local(18), voice_channel_id="vc1")

    _clock_in(db, sink, local(10, 7))

    assert ("c1", "<@u1> clocked in ✅") in sink.channel_messages
    assert sink.renames == [("vc1", "✅ Anna - Mia")]
    log_lines = [text for channel, text in sink.channel_messages if channel == "logs"]
    assert len(log_lines) == 1
    assert "Clock IN" in log_lines[0]
    assert "Late: 7 min" in log_lines[0]
    assert "2026-10-19 10:07 (Europe/Zagreb)" in log_lines[0]


def test_clock_in_survives_failing_sinks(db, sink, make_shift):
    shift = make_shift(local(10), local(18), channel_id="broken")
    sink.raise_for_channels.add("broken")

    res = _clock_in(db, sink, local(10), channel_id="broken")

    assert res.shift.id == shift.id
    assert store.get_attendance(db, shift.id).active


def test_adhoc_clock_in_creates_open_shift(db, sink):
    RuntimeSettings(db).set_default_tz("Europe/London")
    sink.voice_by_channel["c1"] = VoiceTarget("vc7", "Luna")
    sink.display_names["u1"] = "Mia"

    res = _clock_in(db, sink, local(13))

    assert res.adhoc
    assert res.note == "Ad-hoc (unscheduled) clock-in"
    shift = res.shift
    assert shift.end_at is None and shift.model is None and shift.voice_channel_id is None
    assert shift.tz == "Europe/London"
    assert shift.start_at == local(13)
    assert store.get_attendance(db, shift.id).clock_in_at == local(13)
    assert ("c1", "<@u1> clocked in ✅ *(unscheduled/ad-hoc)*") in sink.channel_messages
    assert sink.renames == [("vc7", "✅ Luna - Mia")]


def test_adhoc_clock_in_rejected_when_channel_busy(db, sink):
    _clock_in(db, sink, local(13), user_id="u1")

    with pytest.raises(ConflictError, match="already clocked in in this channel"):
        _clock_in(db, sink, local(13, 5), user_id="u2")
    assert db.scalar(select(func.count()).select_from(Shift)) == 1


def test_adhoc_clock_in_allowed_after_channel_frees_up(db, sink):
    first = _clock_in(db, sink, local(13), user_id="u1")
    store.set_clock_out(db, first.shift.id, local(14))

    second = _clock_in(db, sink, local(14, 5), user_id="u2")
    assert second.adhoc and second.shift.id != first.shift.id


def test_adhoc_clock_in_needs_a_channel(db, sink):
    with pytest.raises(ValidationError):
        _clock_in(db, sink, local(13), channel_id=None)


def test_shift_from_another_day_does_not_count(db, sink, make_shift):
    make_shift(local(10, day=18), local(18, day=18))
    res = _clock_in(db, sink, local(10))
    assert res.adhoc


def test_concurrent_clock_ins_on_one_shift_admit_only_one(tmp_path, sink, monkeypatch):
    engine = create_engine(f"sqlite:///{tmp_path / 'race.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, autoflush=False)
    with Session() as db:
        shift_id = store.create_shift(
            db,
            guild_id="g1",
            user_id="u1",
            channel_id="c1",
            start_at=local(10),
            end_at=local(18),
            tz="Europe/Zagreb",
            now=local(0),
        ).id

    # both callers pass the "not clocked in yet" check before either writes
    barrier = threading.Barrier(2, timeout=5)
    real_get_attendance = store.get_attendance

    def get_attendance_then_meet(db, sid):
        state = real_get_attendance(db, sid)
        barrier.wait()
        return state

    monkeypatch.setattr(store, "get_attendance", get_attendance_then_meet)

    successes, errors = [], []

    def worker(now):
        with Session() as db:
            try:
                successes.append(_clock_in(db, sink, now).clock_in_at)
            except ConflictError as e:
                errors.append(str(e))

    threads = [threading.Thread(target=worker, args=(t,)) for t in (local(10, 1), local(10, 2))]
    for t in threads:
        t.start()
    for t in threads:
        t.join(10)
    monkeypatch.undo()

    assert len(successes) == 1
    assert errors == ["Already clocked in."]
    with Session() as db:
        assert store.get_attendance(db, shift_id).clock_in_at == successes[0]
    assert sink.channel_messages == [("c1", "<@u1> clocked in ✅")]
    engine.dispose()
