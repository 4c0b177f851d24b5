"""Runtime key/value settings, defaulting to the process configuration."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from shiftwatch.core.clock import get_zone
from shiftwatch.core.config import settings
from shiftwatch.core.errors import ValidationError
from shiftwatch.models import Setting

log = logging.getLogger("shiftwatch.settings")

DEFAULT_TZ = "default_tz"
FINE_AMOUNT = "fine_amount"
SCHEDULE_CHANNEL_ID = "schedule_channel_id"
SCHEDULE_MESSAGE_ID = "schedule_message_id"
LOGS_CHANNEL_ID = "shift_logs_channel_id"


def get_setting(db: Session, key: str, fallback: str = "") -> str:
    row = db.get(Setting, key)
    if row is None or row.value is None:
        return fallback
    return row.value


def set_setting(db: Session, key: str, value) -> None:
    row = db.get(Setting, key)
    if row is None:
        db.add(Setting(key=key, value=str(value)))
    else:
        row.value = str(value)
    db.commit()


class RuntimeSettings:
    """Typed view over the settings table, bound to one session."""

    def __init__(self, db: Session):
        self.db = db

    def default_tz(self) -> str:
        return get_setting(self.db, DEFAULT_TZ, settings.DEFAULT_TZ)

    def fine_amount(self) -> float:
        raw = get_setting(self.db, FINE_AMOUNT, "")
        if not raw:
            return float(settings.FINE_AMOUNT)
        try:
            return float(raw)
        except ValueError:
            log.warning("bad fine amount in settings table: %r, using default", raw)
            return float(settings.FINE_AMOUNT)

    def schedule_channel_id(self) -> str:
        return get_setting(self.db, SCHEDULE_CHANNEL_ID)

    def schedule_message_id(self) -> str:
        return get_setting(self.db, SCHEDULE_MESSAGE_ID)

    def logs_channel_id(self) -> str:
        return get_setting(self.db, LOGS_CHANNEL_ID)

    def set_default_tz(self, tz: str) -> None:
        get_zone(tz)
        set_setting(self.db, DEFAULT_TZ, tz.strip())

    def set_fine_amount(self, amount: float) -> None:
        if amount < 0:
            raise ValidationError("Fine amount must not be negative.")
        set_setting(self.db, FINE_AMOUNT, amount)

    def set_schedule_channel_id(self, channel_id: str) -> None:
        set_setting(self.db, SCHEDULE_CHANNEL_ID, channel_id)
        # a new channel means a new board message
        set_setting(self.db, SCHEDULE_MESSAGE_ID, "")

    def set_schedule_message_id(self, message_id: str) -> None:
        set_setting(self.db, SCHEDULE_MESSAGE_ID, message_id)

    def set_logs_channel_id(self, channel_id: str) -> None:
        set_setting(self.db, LOGS_CHANNEL_ID, channel_id)

    def as_dict(self) -> dict:
        return {
            "default_tz": self.default_tz(),
            "fine_amount": self.fine_amount(),
            "schedule_channel_id": self.schedule_channel_id() or None,
            "schedule_message_id": self.schedule_message_id() or None,
            "logs_channel_id": self.logs_channel_id() or None,
        }
