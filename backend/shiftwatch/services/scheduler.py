"""Time-triggered shift events: T-15 reminder, T+0 start ping, T+15 late fine.

There is no per-shift timer. Every tick recomputes what is due from the
stored shifts and the event ledger, so the schedule survives restarts and
any number of ticks over the same state fires each (shift, kind) once.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.orm import Session

from shiftwatch.core.clock import utcnow
from shiftwatch.core.config import settings
from shiftwatch.models import EventKind, Shift
from shiftwatch.services import shifts as store
from shiftwatch.services.fines import create_fine
from shiftwatch.services.ledger import EventLedger
from shiftwatch.services.notify import NotificationSink
from shiftwatch.services.settings_store import RuntimeSettings

log = logging.getLogger("shiftwatch.scheduler")

REMIND_BEFORE = timedelta(minutes=15)
LATE_AFTER = timedelta(minutes=15)


@dataclass
class TickResult:
    now: datetime
    scanned: int = 0
    fired: list[tuple[int, str]] = field(default_factory=list)
    notified: list[tuple[int, str]] = field(default_factory=list)
    fines: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "now": self.now.isoformat(),
            "scanned": self.scanned,
            "fired": [{"shift_id": sid, "kind": kind} for sid, kind in self.fired],
            "notified": len(self.notified),
            "fines": self.fines,
            "failed": self.failed,
        }


def trigger_instants(shift: Shift) -> list[tuple[EventKind, datetime]]:
    return [
        (EventKind.REMIND, shift.start_at - REMIND_BEFORE),
        (EventKind.START, shift.start_at),
        (EventKind.LATEFINE, shift.start_at + LATE_AFTER),
    ]


def _fmt_amount(amount: float) -> str:
    return f"{amount:g}"


def _process_shift(
    db: Session,
    sink: NotificationSink,
    ledger: EventLedger,
    shift: Shift,
    *,
    now: datetime,
    fine_amount: float,
    result: TickResult,
) -> None:
    # snapshot: the session expires attributes on commit
    shift_id = shift.id
    user_id = shift.user_id
    channel_id = shift.channel_id
    guild_id = shift.guild_id
    model = shift.model
    start_iso = shift.start_local.isoformat()

    for kind, at in trigger_instants(shift):
        if now < at:
            continue
        if ledger.has_fired(shift_id, kind):
            continue

        clocked_in = store.get_attendance(db, shift_id).clocked_in

        if kind is EventKind.LATEFINE:
            # marker and fine row commit together; losing the insert race means someone else fined
            if not ledger.mark_fired(shift_id, kind, now):
                db.rollback()
                continue
            if clocked_in:
                db.commit()
                result.fired.append((shift_id, kind.value))
                continue

            reason = f"Late for shift starting {start_iso}"
            fine = create_fine(
                db,
                guild_id=guild_id,
                user_id=user_id,
                amount=fine_amount,
                reason=reason,
                issued_at=now,
                shift_id=shift_id,
                model=model,
                commit=False,
            )
            db.commit()
            result.fired.append((shift_id, kind.value))
            result.fines.append(fine.id)
            log.info("late fine issued shift_id=%s user_id=%s fine_id=%s", shift_id, user_id, fine.id)

            amount = f"{settings.FINE_CURRENCY}{_fmt_amount(fine_amount)}"
            if sink.send_direct_message(
                user_id, f"You've been fined {amount} for not clocking in on time. ({reason})"
            ):
                result.notified.append((shift_id, kind.value))
            elif sink.send_to_channel(channel_id, f"<@{user_id}> fined {amount} for missing clock-in. ({reason})"):
                result.notified.append((shift_id, kind.value))
            continue

        if not clocked_in:
            if kind is EventKind.REMIND:
                text = f"<@{user_id}> shift for **{model or 'your model'}** starts in 15 minutes. Please /clockin."
            else:
                text = f"⏰ <@{user_id}> your shift **{model or ''}** starts NOW. Please /clockin."
            if sink.send_to_channel(channel_id, text):
                result.notified.append((shift_id, kind.value))

        ledger.mark_fired(shift_id, kind, now)
        db.commit()
        result.fired.append((shift_id, kind.value))


def run_tick(db: Session, sink: NotificationSink, *, now: datetime | None = None) -> TickResult:
    """One scan over shifts starting in [now - lookback, now + lookahead].

    A shift whose late-fine instant lies further back than the lookback when
    it is first seen is never fined.
    """
    now = now or utcnow()
    result = TickResult(now=now)

    shifts = store.find_shifts_in_window(
        db,
        now - timedelta(hours=settings.SCHEDULER_LOOKBACK_HOURS),
        now + timedelta(hours=settings.SCHEDULER_LOOKAHEAD_HOURS),
    )
    result.scanned = len(shifts)
    if not shifts:
        return result

    fine_amount = RuntimeSettings(db).fine_amount()
    ledger = EventLedger(db)

    for shift in shifts:
        shift_id = shift.id
        try:
            _process_shift(db, sink, ledger, shift, now=now, fine_amount=fine_amount, result=result)
        except Exception:
            db.rollback()
            result.failed.append(shift_id)
            log.exception("scheduler: shift_id=%s failed", shift_id)

    return result


class Scheduler:
    """Runs ``run_tick`` every ``interval`` seconds; overlapping ticks are skipped."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        sink: NotificationSink,
        *,
        interval: float | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.sink = sink
        self.interval = settings.SCHEDULER_INTERVAL_SECONDS if interval is None else interval
        self.clock = clock
        self._lock = asyncio.Lock()
        self._task: asyncio.Task | None = None

    def _tick_sync(self) -> TickResult:
        with self.session_factory() as db:
            return run_tick(db, self.sink, now=self.clock())

    async def tick(self) -> TickResult | None:
        """Run one tick now. Returns None if a tick is already in flight."""
        if self._lock.locked():
            log.info("scheduler tick skipped: previous tick still running")
            return None
        async with self._lock:
            result = await asyncio.to_thread(self._tick_sync)
        if result.fired or result.failed:
            log.info(
                "scheduler tick: scanned=%s fired=%s fines=%s failed=%s",
                result.scanned,
                len(result.fired),
                len(result.fines),
                len(result.failed),
            )
        return result

    async def _loop(self) -> None:
        while True:
            try:
                await self.tick()
            except Exception:
                log.exception("scheduler tick failed")
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            log.info("scheduler already running, skipping start")
            return
        self._task = asyncio.create_task(self._loop())
        log.info("scheduler started: every %ss", self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
