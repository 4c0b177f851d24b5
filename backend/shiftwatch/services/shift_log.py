"""Side effects of clock-in/clock-out: log channel entry, voice naming, work channel notice."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from shiftwatch.core.clock import fmt_date_hm
from shiftwatch.models import Shift
from shiftwatch.services.notify import DirectorySink, NotificationSink
from shiftwatch.services.settings_store import RuntimeSettings

log = logging.getLogger("shiftwatch.shift_log")


def log_shift_event(
    db: Session,
    sink: NotificationSink,
    *,
    kind: str,
    user_id: str,
    shift: Shift,
    when: datetime,
    model: str | None = None,
    extra: str | None = None,
) -> bool:
    """Post a clock-in ("in") / clock-out ("out") summary to the logs channel, if one is set."""
    rs = RuntimeSettings(db)
    logs_channel_id = rs.logs_channel_id()
    if not logs_channel_id:
        return False

    tz = rs.default_tz()
    lines = [
        "✅ **Clock IN**" if kind == "in" else "❌ **Clock OUT**",
        f"• Worker: <@{user_id}>",
        f"• Model: {model or shift.model or 'Model'}",
        f"• Channel: <#{shift.channel_id}>",
        f"• Time: {fmt_date_hm(when, tz)} ({tz})",
    ]
    if extra:
        lines.append(f"• {extra}")
    return sink.send_to_channel(logs_channel_id, "\n".join(lines))


def display_name(directory: DirectorySink, shift: Shift) -> str:
    return directory.member_display_name(shift.guild_id, shift.user_id) or shift.user_id


def refresh_voice_clocked_in(directory: DirectorySink, shift: Shift) -> str | None:
    """Rename the shift's voice channel to show who is on. Returns the label used."""
    name = display_name(directory, shift)
    if shift.voice_channel_id:
        label = shift.model or "Model"
        directory.rename_voice_channel(shift.voice_channel_id, f"✅ {label} - {name}")
        return label

    target = directory.resolve_voice_and_label(shift.channel_id, shift.model or "Model")
    if target.voice_channel_id:
        directory.rename_voice_channel(target.voice_channel_id, f"✅ {target.label} - {name}")
    return target.label


def refresh_voice_clocked_out(directory: DirectorySink, shift: Shift) -> None:
    if shift.voice_channel_id:
        directory.rename_voice_channel(shift.voice_channel_id, f"❌ {shift.model or 'Model'}")
        return

    target = directory.resolve_voice_and_label(shift.channel_id, shift.model or "Model")
    if target.voice_channel_id:
        directory.rename_voice_channel(target.voice_channel_id, f"❌ {target.label}")
