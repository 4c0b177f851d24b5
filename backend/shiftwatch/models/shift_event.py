from __future__ import annotations

from datetime import datetime

from sqlalchemy import Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from shiftwatch.core.db import Base, UTCDateTime


class ShiftEvent(Base):
    """Ledger marker: the (shift, kind) time-triggered event has been handled."""

    __tablename__ = "shift_events"
    __table_args__ = (
        UniqueConstraint("shift_id", "kind", name="uq_shift_events_shift_kind"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    shift_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    fired_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
