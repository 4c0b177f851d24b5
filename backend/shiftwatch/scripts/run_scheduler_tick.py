"""Run one scheduler tick: reminders, start pings and late fines that are due.

Useful from cron when the in-process scheduler is disabled, or by hand.

Env:
  - DATABASE_URL (via shiftwatch.core.config)
  - BOT_SERVICE_URL / BOT_SERVICE_SECRET for delivery
  - DRY_RUN=1 only lists what is due, nothing is sent or recorded
"""

from __future__ import annotations

import os
from datetime import timedelta

from shiftwatch.core.clock import utcnow
from shiftwatch.core.config import settings
from shiftwatch.core.db import SessionLocal
from shiftwatch.services.ledger import EventLedger
from shiftwatch.services.notify import BotServiceClient
from shiftwatch.services.scheduler import run_tick, trigger_instants
from shiftwatch.services.shifts import find_shifts_in_window

DRY_RUN = os.getenv("DRY_RUN", "").strip() in ("1", "true", "yes")


def due_events(db, now) -> list[tuple[int, str]]:
    ledger = EventLedger(db)
    shifts = find_shifts_in_window(
        db,
        now - timedelta(hours=settings.SCHEDULER_LOOKBACK_HOURS),
        now + timedelta(hours=settings.SCHEDULER_LOOKAHEAD_HOURS),
    )
    due = []
    for sh in shifts:
        for kind, at in trigger_instants(sh):
            if now >= at and not ledger.has_fired(sh.id, kind):
                due.append((sh.id, kind.value))
    return due


def main() -> int:
    now = utcnow()
    with SessionLocal() as db:
        if DRY_RUN:
            due = due_events(db, now)
            for shift_id, kind in due:
                print(f"DRY_RUN due: shift_id={shift_id} kind={kind}")
            return len(due)

        result = run_tick(db, BotServiceClient(), now=now)
        return len(result.fired)


if __name__ == "__main__":
    n = main()
    print(f"fired={n}")
