"""Event ledger: which time-triggered events have already fired per shift.

Written by the scheduler and, to pre-empt reminders after a real clock-in,
by the attendance store. Both get it passed in explicitly.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from shiftwatch.models import EventKind, ShiftEvent


class EventLedger:
    def __init__(self, db: Session):
        self.db = db

    def has_fired(self, shift_id: int, kind: EventKind | str) -> bool:
        row = self.db.execute(
            select(ShiftEvent.id).where(
                ShiftEvent.shift_id == shift_id,
                ShiftEvent.kind == EventKind(kind).value,
            )
        ).first()
        return row is not None

    def mark_fired(self, shift_id: int, kind: EventKind | str, when: datetime) -> bool:
        """Insert the marker unless present. Returns True if this call created it.

        Runs inside the caller's transaction; the caller commits.
        """
        values = {"shift_id": shift_id, "kind": EventKind(kind).value, "fired_at": when}
        dialect = self.db.get_bind().dialect.name

        if dialect in ("sqlite", "postgresql"):
            insert = sqlite.insert if dialect == "sqlite" else postgresql.insert
            stmt = insert(ShiftEvent).values(**values).on_conflict_do_nothing(
                index_elements=["shift_id", "kind"]
            )
            return self.db.execute(stmt).rowcount == 1

        # other backends: check first, unique constraint still guards races
        if self.has_fired(shift_id, kind):
            return False
        self.db.add(ShiftEvent(**values))
        self.db.flush()
        return True

    def forget_shift(self, shift_id: int) -> int:
        return self.db.execute(delete(ShiftEvent).where(ShiftEvent.shift_id == shift_id)).rowcount
