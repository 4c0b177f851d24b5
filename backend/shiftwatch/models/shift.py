from __future__ import annotations

from datetime import datetime

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shiftwatch.core.clock import to_local
from shiftwatch.core.db import Base, UTCDateTime


class Shift(Base):
    """A scheduled (or ad-hoc) work period of one worker in one work channel."""

    __tablename__ = "shifts"
    # never reuse the id of a deleted shift: ledger rows are keyed by it
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(primary_key=True)

    guild_id: Mapped[str] = mapped_column(String(32), nullable=False)
    user_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    channel_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)

    start_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    # NULL for ad-hoc shifts created by a clock-in
    end_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    tz: Mapped[str] = mapped_column(String(64), nullable=False)

    model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    voice_channel_id: Mapped[str | None] = mapped_column(String(32), nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    attendances = relationship(
        "Attendance",
        back_populates="shift",
        cascade="all, delete-orphan",
        order_by="Attendance.id",
    )

    @property
    def start_local(self) -> datetime:
        return to_local(self.start_at, self.tz)

    @property
    def end_local(self) -> datetime | None:
        return to_local(self.end_at, self.tz) if self.end_at else None
