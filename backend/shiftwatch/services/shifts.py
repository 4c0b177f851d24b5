"""Shift & attendance store.

Every function does its reads and writes in the given session and commits
at the end of a mutating operation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from shiftwatch.core.clock import get_zone, to_local
from shiftwatch.core.errors import ConflictError, NotFoundError, ValidationError
from shiftwatch.models import Attendance, EventKind, Shift
from shiftwatch.services.ledger import EventLedger


@dataclass(frozen=True)
class AttendanceState:
    clock_in_at: datetime | None
    clock_out_at: datetime | None

    @property
    def clocked_in(self) -> bool:
        return self.clock_in_at is not None

    @property
    def active(self) -> bool:
        return self.clock_in_at is not None and self.clock_out_at is None


def create_shift(
    db: Session,
    *,
    guild_id: str,
    user_id: str,
    channel_id: str,
    start_at: datetime,
    end_at: datetime | None,
    tz: str,
    model: str | None = None,
    voice_channel_id: str | None = None,
    now: datetime,
) -> Shift:
    get_zone(tz)
    if end_at is not None and end_at <= start_at:
        raise ValidationError("End must be after start.")

    shift = Shift(
        guild_id=guild_id,
        user_id=user_id,
        channel_id=channel_id,
        start_at=start_at,
        end_at=end_at,
        tz=tz,
        model=model or None,
        voice_channel_id=voice_channel_id or None,
        created_at=now,
    )
    db.add(shift)
    db.flush()  # assigns shift.id
    db.add(Attendance(user_id=user_id, shift_id=shift.id))
    db.commit()
    db.refresh(shift)
    return shift


def create_adhoc_shift(
    db: Session,
    *,
    guild_id: str,
    user_id: str,
    channel_id: str,
    tz: str,
    now: datetime,
    commit: bool = True,
) -> Shift:
    """Open-ended shift that starts already clocked in at ``now``."""
    shift = Shift(
        guild_id=guild_id,
        user_id=user_id,
        channel_id=channel_id,
        start_at=now,
        end_at=None,
        tz=tz,
        model=None,
        voice_channel_id=None,
        created_at=now,
    )
    db.add(shift)
    db.flush()
    db.add(Attendance(user_id=user_id, shift_id=shift.id, clock_in_at=now))
    if commit:
        db.commit()
        db.refresh(shift)
    return shift


def delete_shift(db: Session, shift_id: int) -> int:
    shift = db.get(Shift, shift_id)
    if shift is None:
        return 0
    db.delete(shift)
    EventLedger(db).forget_shift(shift_id)
    db.commit()
    return 1


def remove_shift(db: Session, shift_id: int) -> None:
    if not delete_shift(db, shift_id):
        raise NotFoundError("Shift not found.")


def find_shifts_in_window(db: Session, start: datetime, end: datetime) -> list[Shift]:
    """Shifts with start in [start, end], ascending by start."""
    return list(
        db.execute(
            select(Shift)
            .where(Shift.start_at >= start, Shift.start_at <= end)
            .order_by(Shift.start_at.asc(), Shift.id.asc())
        ).scalars()
    )


def find_nearest_shift_for_user_today(db: Session, user_id: str, now: datetime) -> Shift | None:
    """The user's shift starting "today" closest in time to ``now``.

    "Today" is evaluated in each shift's own timezone: a shift qualifies when
    its local start date equals the local date of ``now`` in that zone.
    """
    # Local dates can differ from UTC by at most ~14h either way.
    candidates = db.execute(
        select(Shift).where(
            Shift.user_id == user_id,
            Shift.start_at >= now - timedelta(hours=38),
            Shift.start_at <= now + timedelta(hours=38),
        )
    ).scalars()

    best: Shift | None = None
    best_gap: float | None = None
    for shift in candidates:
        if shift.start_local.date() != to_local(now, shift.tz).date():
            continue
        gap = abs((shift.start_at - now).total_seconds())
        if best_gap is None or gap < best_gap or (gap == best_gap and shift.id < best.id):
            best, best_gap = shift, gap
    return best


def _current_attendance(db: Session, shift_id: int) -> Attendance | None:
    return db.execute(
        select(Attendance)
        .where(Attendance.shift_id == shift_id)
        .order_by(Attendance.id.desc())
        .limit(1)
    ).scalar_one_or_none()


def get_attendance(db: Session, shift_id: int) -> AttendanceState:
    row = _current_attendance(db, shift_id)
    if row is None:
        return AttendanceState(None, None)
    return AttendanceState(row.clock_in_at, row.clock_out_at)


def set_clock_in(db: Session, shift_id: int, when: datetime, *, ledger: EventLedger | None = None) -> None:
    """Record the clock-in. Raises ConflictError if the shift is already clocked in."""
    row = _current_attendance(db, shift_id)
    if row is None:
        shift = db.get(Shift, shift_id)
        if shift is None:
            raise NotFoundError("Shift not found.")
        db.add(Attendance(user_id=shift.user_id, shift_id=shift_id, clock_in_at=when))
    else:
        # write-once: a concurrent clock-in that got here first wins
        res = db.execute(
            update(Attendance)
            .where(Attendance.id == row.id, Attendance.clock_in_at.is_(None))
            .values(clock_in_at=when)
        )
        if res.rowcount != 1:
            db.rollback()
            raise ConflictError("Already clocked in.")

    # the worker is here: reminder and start ping are moot now
    ledger = ledger or EventLedger(db)
    ledger.mark_fired(shift_id, EventKind.REMIND, when)
    ledger.mark_fired(shift_id, EventKind.START, when)
    db.commit()


def set_clock_out(db: Session, shift_id: int, when: datetime) -> None:
    row = _current_attendance(db, shift_id)
    if row is None:
        raise NotFoundError("Shift not found.")
    row.clock_out_at = when
    db.commit()


def is_channel_active(db: Session, channel_id: str) -> bool:
    row = db.execute(
        select(Attendance.id)
        .join(Shift, Shift.id == Attendance.shift_id)
        .where(
            Shift.channel_id == channel_id,
            Attendance.clock_in_at.is_not(None),
            Attendance.clock_out_at.is_(None),
        )
        .limit(1)
    ).first()
    return row is not None


def find_active_shift_for_user(db: Session, user_id: str) -> Shift | None:
    """Most recent (by start) shift the user is clocked in to and not yet out of."""
    return db.execute(
        select(Shift)
        .join(Attendance, Attendance.shift_id == Shift.id)
        .where(
            Shift.user_id == user_id,
            Attendance.clock_in_at.is_not(None),
            Attendance.clock_out_at.is_(None),
        )
        .order_by(Shift.start_at.desc(), Shift.id.desc())
        .limit(1)
    ).scalars().first()


def upcoming_shifts(db: Session, now: datetime, hours: int = 24) -> list[Shift]:
    return find_shifts_in_window(db, now, now + timedelta(hours=hours))
