from sqlalchemy import func, select

from shiftwatch.models import EventKind, ShiftEvent
from shiftwatch.services.ledger import EventLedger

from conftest import local


def _count(db):
    return db.scalar(select(func.count()).select_from(ShiftEvent))


def test_mark_fired_is_idempotent(db):
    ledger = EventLedger(db)
    assert not ledger.has_fired(1, EventKind.REMIND)

    assert ledger.mark_fired(1, EventKind.REMIND, local(9, 45)) is True
    db.commit()
    assert ledger.mark_fired(1, EventKind.REMIND, local(9, 50)) is False
    db.commit()

    assert ledger.has_fired(1, "remind")
    assert _count(db) == 1
    row = db.execute(select(ShiftEvent)).scalar_one()
    assert row.fired_at == local(9, 45)


def test_kinds_are_tracked_separately(db):
    ledger = EventLedger(db)
    ledger.mark_fired(7, EventKind.REMIND, local(9, 45))
    db.commit()

    assert ledger.has_fired(7, EventKind.REMIND)
    assert not ledger.has_fired(7, EventKind.START)
    assert not ledger.has_fired(8, EventKind.REMIND)


def test_forget_shift_drops_only_that_shift(db):
    ledger = EventLedger(db)
    for kind in EventKind:
        ledger.mark_fired(3, kind, local(10))
    ledger.mark_fired(4, EventKind.START, local(10))
    db.commit()

    assert ledger.forget_shift(3) == 3
    db.commit()
    assert _count(db) == 1
    assert ledger.has_fired(4, EventKind.START)
