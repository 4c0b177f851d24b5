"""Outbound delivery: chat messages, prompts, the schedule board and voice channels.

The chat platform is reached through the internal bot-service over HTTP.
Nothing here raises to the caller: failures are logged and reported as a
falsy return value.
"""

from __future__ import annotations

import json
import logging
import urllib.request
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from shiftwatch.core.config import settings
from shiftwatch.core.errors import DeliveryFailure

log = logging.getLogger("shiftwatch.notify")


@dataclass(frozen=True)
class VoiceTarget:
    voice_channel_id: str | None
    label: str


class NotificationSink(Protocol):
    def send_to_channel(self, channel_id: str, text: str) -> bool: ...

    def send_direct_message(self, user_id: str, text: str) -> bool: ...

    def send_prompt(self, channel_id: str, user_id: str, text: str, token: str) -> bool: ...

    def publish_board(self, channel_id: str, message_id: str | None, text: str) -> str | None: ...


class DirectorySink(Protocol):
    def resolve_voice_and_label(self, text_channel_id: str, fallback_label: str = "Model") -> VoiceTarget: ...

    def rename_voice_channel(self, voice_channel_id: str, new_name: str) -> bool: ...

    def member_display_name(self, guild_id: str, user_id: str) -> str | None: ...


class BotServiceClient:
    """Both sinks, backed by the bot-service HTTP API."""

    def __init__(self, base_url: str | None = None, secret: str | None = None, timeout: float = 5.0):
        self.base_url = (base_url if base_url is not None else settings.BOT_SERVICE_URL).rstrip("/")
        self.secret = secret if secret is not None else settings.BOT_SERVICE_SECRET
        self.timeout = timeout

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        if not self.base_url:
            raise DeliveryFailure(f"no BOT_SERVICE_URL configured ({path})")

        data = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        req = urllib.request.Request(
            self.base_url + path,
            data=data,
            method="POST",
            headers={
                "Content-Type": "application/json",
                **({"X-Bot-Secret": self.secret} if self.secret else {}),
            },
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                body = resp.read().decode("utf-8", errors="ignore")
                if not 200 <= resp.status < 300:
                    raise DeliveryFailure(f"bot-service {path} status={resp.status} body={body[:300]}")
        except DeliveryFailure:
            raise
        except Exception as e:
            raise DeliveryFailure(f"bot-service {path} failed: {e}") from e

        if not body:
            return {"ok": True}
        try:
            js = json.loads(body)
        except ValueError:
            return {"ok": True}
        if not js.get("ok", True):
            raise DeliveryFailure(f"bot-service {path} rejected: {body[:300]}")
        return js

    def _try(self, path: str, payload: dict[str, Any]) -> Optional[dict[str, Any]]:
        try:
            return self._post(path, payload)
        except DeliveryFailure as e:
            log.warning("delivery failed: %s", e)
            return None

    # --- NotificationSink ---

    def send_to_channel(self, channel_id: str, text: str) -> bool:
        return self._try("/notify", {"channel_id": channel_id, "text": text}) is not None

    def send_direct_message(self, user_id: str, text: str) -> bool:
        return self._try("/dm", {"user_id": user_id, "text": text}) is not None

    def send_prompt(self, channel_id: str, user_id: str, text: str, token: str) -> bool:
        payload = {"channel_id": channel_id, "user_id": user_id, "text": text, "token": token}
        return self._try("/prompt", payload) is not None

    def publish_board(self, channel_id: str, message_id: str | None, text: str) -> str | None:
        js = self._try("/board", {"channel_id": channel_id, "message_id": message_id or None, "text": text})
        if js is None:
            return None
        return js.get("message_id") or None

    # --- DirectorySink ---

    def resolve_voice_and_label(self, text_channel_id: str, fallback_label: str = "Model") -> VoiceTarget:
        js = self._try("/voice/resolve", {"channel_id": text_channel_id, "fallback_label": fallback_label})
        if js is None:
            return VoiceTarget(None, fallback_label)
        return VoiceTarget(js.get("voice_channel_id") or None, js.get("label") or fallback_label)

    def rename_voice_channel(self, voice_channel_id: str, new_name: str) -> bool:
        if not voice_channel_id:
            return False
        return self._try("/voice/rename", {"channel_id": voice_channel_id, "name": new_name}) is not None

    def member_display_name(self, guild_id: str, user_id: str) -> str | None:
        js = self._try("/members/display-name", {"guild_id": guild_id, "user_id": user_id})
        if js is None:
            return None
        return js.get("display_name") or None
