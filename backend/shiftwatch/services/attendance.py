"""Attendance state machine: clock-in (scheduled or ad-hoc) and clock-out.

Per user and day a shift moves Unscheduled / Scheduled-Pending -> Clocked-In
-> Clocked-Out. Chat side effects (notices, voice naming, log channel) are
best-effort and never fail the state change that triggered them.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import threading
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session

from shiftwatch.core.clock import fmt_hm, utcnow
from shiftwatch.core.config import settings
from shiftwatch.core.errors import ConflictError, ValidationError
from shiftwatch.models import Shift
from shiftwatch.services import shifts as store
from shiftwatch.services.confirmations import ConfirmationRegistry, Decision
from shiftwatch.services.ledger import EventLedger
from shiftwatch.services.notify import DirectorySink, NotificationSink
from shiftwatch.services.settings_store import RuntimeSettings
from shiftwatch.services.shift_log import (
    log_shift_event,
    refresh_voice_clocked_in,
    refresh_voice_clocked_out,
)

log = logging.getLogger("shiftwatch.attendance")


class ClockOutOutcome(str, enum.Enum):
    CLOCKED_OUT = "clocked_out"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ClockInResult:
    shift: Shift
    clock_in_at: datetime
    adhoc: bool
    late_minutes: int

    @property
    def note(self) -> str:
        if self.adhoc:
            return "Ad-hoc (unscheduled) clock-in"
        return lateness_note(self.late_minutes)


@dataclass(frozen=True)
class ClockOutResult:
    outcome: ClockOutOutcome
    shift: Shift
    clock_out_at: datetime | None = None
    early: bool = False


def late_minutes(start_at: datetime, now: datetime) -> int:
    """Whole minutes past start, floored. Negative when early."""
    return int((now - start_at).total_seconds() // 60)


def lateness_note(minutes: int) -> str:
    return f"Late: {minutes} min" if minutes > 0 else "On time"


# One critical section per work channel for the read-then-create ad-hoc path.
_channel_locks: dict[str, threading.Lock] = defaultdict(threading.Lock)
_channel_locks_guard = threading.Lock()


@contextmanager
def _channel_lock(channel_id: str):
    with _channel_locks_guard:
        lock = _channel_locks[channel_id]
    with lock:
        yield


def _best_effort(what: str, fn: Callable, *args, **kwargs):
    try:
        return fn(*args, **kwargs)
    except Exception:
        log.exception("%s failed", what)
        return None


def clock_in(
    db: Session,
    sink: NotificationSink,
    directory: DirectorySink,
    *,
    user_id: str,
    channel_id: str | None,
    now: datetime,
    guild_id: str | None = None,
    ledger: EventLedger | None = None,
) -> ClockInResult:
    """Clock in to today's nearest shift, or open an ad-hoc one in ``channel_id``."""
    nearest = store.find_nearest_shift_for_user_today(db, user_id, now)

    if nearest is not None:
        if store.get_attendance(db, nearest.id).clocked_in:
            raise ConflictError("Already clocked in.")

        store.set_clock_in(db, nearest.id, now, ledger=ledger)
        result = ClockInResult(
            shift=nearest,
            clock_in_at=now,
            adhoc=False,
            late_minutes=late_minutes(nearest.start_at, now),
        )
        log.info("clock-in user_id=%s shift_id=%s %s", user_id, nearest.id, result.note)

        _best_effort("clock-in notice", sink.send_to_channel, nearest.channel_id, f"<@{user_id}> clocked in ✅")
        _best_effort("voice rename", refresh_voice_clocked_in, directory, nearest)
        _best_effort(
            "shift log",
            log_shift_event,
            db,
            sink,
            kind="in",
            user_id=user_id,
            shift=nearest,
            when=now,
            extra=result.note,
        )
        return result

    if not channel_id:
        raise ValidationError("Run clock-in inside the model's text channel.")

    with _channel_lock(channel_id):
        if store.is_channel_active(db, channel_id):
            raise ConflictError("Someone is already clocked in in this channel.")
        shift = store.create_adhoc_shift(
            db,
            guild_id=guild_id if guild_id is not None else settings.GUILD_ID,
            user_id=user_id,
            channel_id=channel_id,
            tz=RuntimeSettings(db).default_tz(),
            now=now,
        )

    result = ClockInResult(shift=shift, clock_in_at=now, adhoc=True, late_minutes=0)
    log.info("ad-hoc clock-in user_id=%s channel_id=%s shift_id=%s", user_id, channel_id, shift.id)

    _best_effort(
        "clock-in notice", sink.send_to_channel, channel_id, f"<@{user_id}> clocked in ✅ *(unscheduled/ad-hoc)*"
    )
    label = _best_effort("voice rename", refresh_voice_clocked_in, directory, shift)
    _best_effort(
        "shift log",
        log_shift_event,
        db,
        sink,
        kind="in",
        user_id=user_id,
        shift=shift,
        when=now,
        model=label,
        extra=result.note,
    )
    return result


def _reload_attendance(db: Session, shift_id: int) -> store.AttendanceState:
    # state may have moved while we waited
    db.expire_all()
    return store.get_attendance(db, shift_id)


def _after_clock_out(db: Session, sink: NotificationSink, directory: DirectorySink, shift: Shift, when: datetime):
    _best_effort("clock-out notice", sink.send_to_channel, shift.channel_id, f"<@{shift.user_id}> clocked out ❌")
    _best_effort("voice rename", refresh_voice_clocked_out, directory, shift)
    _best_effort("shift log", log_shift_event, db, sink, kind="out", user_id=shift.user_id, shift=shift, when=when)


async def clock_out(
    db: Session,
    sink: NotificationSink,
    directory: DirectorySink,
    confirmations: ConfirmationRegistry,
    *,
    user_id: str,
    now: datetime,
    channel_id: str | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> ClockOutResult:
    """Clock out of the user's active shift.

    Before the scheduled end the user must confirm within the confirmation
    window; the clock-out is then recorded at the moment of confirmation.
    Raises ConflictError without an active shift and ConfirmationTimeout when
    the window elapses.
    """
    shift = await asyncio.to_thread(store.find_active_shift_for_user, db, user_id)
    if shift is None:
        raise ConflictError("No active shift found or not clocked in.")
    shift_id = shift.id

    when = now
    early = shift.end_at is not None and now < shift.end_at
    if early:
        text = (
            f"⚠️ You are scheduled until **{fmt_hm(shift.end_at, shift.tz)}** ({shift.tz}).\n"
            "Clocking out early may result in a fine.\n"
            "Choose an option:"
        )
        pending = confirmations.open(user_id)
        try:
            sent = await asyncio.to_thread(
                _best_effort, "clock-out prompt", sink.send_prompt, channel_id or shift.channel_id, user_id, text, pending.token
            )
            if not sent:
                log.warning("clock-out prompt not delivered (user_id=%s shift_id=%s)", user_id, shift_id)
            decision = await confirmations.wait(pending)
        finally:
            confirmations.discard(pending)

        if decision is Decision.CANCELLED:
            log.info("early clock-out cancelled user_id=%s shift_id=%s", user_id, shift_id)
            return ClockOutResult(ClockOutOutcome.CANCELLED, shift, early=True)

        when = clock()
        state = await asyncio.to_thread(_reload_attendance, db, shift_id)
        if not state.active:
            raise ConflictError("No active shift found or not clocked in.")

    await asyncio.to_thread(store.set_clock_out, db, shift_id, when)
    log.info("clock-out user_id=%s shift_id=%s early=%s", user_id, shift_id, early)

    await asyncio.to_thread(_after_clock_out, db, sink, directory, shift, when)
    return ClockOutResult(ClockOutOutcome.CLOCKED_OUT, shift, clock_out_at=when, early=early)
