"""The pinned schedule board: next week's labelled shifts, grouped by local day."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from shiftwatch.core.clock import to_local
from shiftwatch.models import Shift
from shiftwatch.services.notify import NotificationSink
from shiftwatch.services.settings_store import RuntimeSettings

log = logging.getLogger("shiftwatch.board")


def shifts_for_board(db: Session, now: datetime, days: int = 7) -> list[Shift]:
    return list(
        db.execute(
            select(Shift)
            .where(
                Shift.start_at >= now,
                Shift.start_at <= now + timedelta(days=days),
                Shift.model.is_not(None),
            )
            .order_by(Shift.start_at.asc(), Shift.id.asc())
        ).scalars()
    )


def render_schedule_text(rows: list[Shift], tz: str, now: datetime) -> str:
    by_day: dict = {}
    for s in rows:
        start = to_local(s.start_at, tz)
        end = to_local(s.end_at, tz).strftime("%H:%M") if s.end_at else "??"
        line = (
            f"• **{start:%H:%M}–{end}** • {s.model or 'Model'}"
            f" • <@{s.user_id}> • <#{s.channel_id}>"
        )
        if s.voice_channel_id:
            line += f" • VC: <#{s.voice_channel_id}>"
        by_day.setdefault(start.date(), []).append(line)

    today = to_local(now, tz).date()
    text = f"**📅 Schedule (auto) — TZ: {tz}**\n> Today: **{len(by_day.get(today, []))}** shift(s)\n\n"
    for day in sorted(by_day):
        text += f"__{day:%a %d.%m}__\n" + "\n".join(by_day[day]) + "\n\n"
    if not by_day:
        text += "_No scheduled shifts._"
    return text.strip()


def update_schedule_board(db: Session, sink: NotificationSink, now: datetime) -> bool:
    """Edit the board message in place, or post a new one and remember its id."""
    rs = RuntimeSettings(db)
    channel_id = rs.schedule_channel_id()
    if not channel_id:
        return False

    text = render_schedule_text(shifts_for_board(db, now), rs.default_tz(), now)
    old_id = rs.schedule_message_id() or None
    message_id = sink.publish_board(channel_id, old_id, text)
    if not message_id:
        log.warning("schedule board update failed (channel_id=%s)", channel_id)
        return False
    if message_id != old_id:
        rs.set_schedule_message_id(message_id)
    return True
