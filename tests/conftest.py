from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("BOT_SERVICE_URL", "")
os.environ.setdefault("BOT_SERVICE_SECRET", "")

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shiftwatch.core.db import Base
from shiftwatch.services import shifts as store
from shiftwatch.services.notify import VoiceTarget

TZ = "Europe/Zagreb"


def local(hour: int, minute: int = 0, second: int = 0, *, day: int = 19, tz: str = TZ) -> datetime:
    """Instant (UTC) of the given local wall time on 2026-10-<day>."""
    return datetime(2026, 10, day, hour, minute, second, tzinfo=ZoneInfo(tz)).astimezone(timezone.utc)


class FakeSink:
    """Records every delivery; individual routes can be made to fail or raise."""

    def __init__(self):
        self.channel_messages: list[tuple[str, str]] = []
        self.direct_messages: list[tuple[str, str]] = []
        self.prompts: list[dict] = []
        self.boards: list[dict] = []
        self.renames: list[tuple[str, str]] = []
        self.fail_channel = False
        self.fail_dm = False
        self.raise_for_channels: set[str] = set()
        self.voice_by_channel: dict[str, VoiceTarget] = {}
        self.display_names: dict[str, str] = {}
        self._next_message_id = 100

    def send_to_channel(self, channel_id, text):
        if channel_id in self.raise_for_channels:
            raise RuntimeError(f"boom in {channel_id}")
        if self.fail_channel:
            return False
        self.channel_messages.append((channel_id, text))
        return True

    def send_direct_message(self, user_id, text):
        if self.fail_dm:
            return False
        self.direct_messages.append((user_id, text))
        return True

    def send_prompt(self, channel_id, user_id, text, token):
        self.prompts.append({"channel_id": channel_id, "user_id": user_id, "text": text, "token": token})
        return True

    def publish_board(self, channel_id, message_id, text):
        self.boards.append({"channel_id": channel_id, "message_id": message_id, "text": text})
        if message_id:
            return message_id
        self._next_message_id += 1
        return str(self._next_message_id)

    def resolve_voice_and_label(self, text_channel_id, fallback_label="Model"):
        return self.voice_by_channel.get(text_channel_id, VoiceTarget(None, fallback_label))

    def rename_voice_channel(self, voice_channel_id, new_name):
        self.renames.append((voice_channel_id, new_name))
        return True

    def member_display_name(self, guild_id, user_id):
        return self.display_names.get(user_id)


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sink():
    return FakeSink()


@pytest.fixture
def make_shift(db):
    def _make(
        start,
        end=None,
        *,
        user_id="u1",
        channel_id="c1",
        tz=TZ,
        model="Anna",
        voice_channel_id=None,
    ):
        return store.create_shift(
            db,
            guild_id="g1",
            user_id=user_id,
            channel_id=channel_id,
            start_at=start,
            end_at=end,
            tz=tz,
            model=model,
            voice_channel_id=voice_channel_id,
            now=local(0, 0),
        )

    return _make
