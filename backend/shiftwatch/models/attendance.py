from __future__ import annotations

from datetime import datetime

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shiftwatch.core.db import Base, UTCDateTime


class Attendance(Base):
    """Clock-in/clock-out record of a shift. The latest row per shift is authoritative."""

    __tablename__ = "attendance"

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[str] = mapped_column(String(32), nullable=False)
    shift_id: Mapped[int] = mapped_column(ForeignKey("shifts.id", ondelete="CASCADE"), index=True)

    clock_in_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    clock_out_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    shift = relationship("Shift", back_populates="attendances")
