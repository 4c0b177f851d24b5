from __future__ import annotations

import os
import json
import logging
import urllib.request
import urllib.error
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

# Outbound-only bot service.
# The backend calls it over HTTP to post messages, prompts and the schedule
# board, and to look up / rename voice channels. It talks to the Discord REST
# API (v10) with the bot token.

DISCORD_TOKEN = os.getenv("DISCORD_TOKEN", "")
BOT_SERVICE_SECRET = os.getenv("BOT_SERVICE_SECRET", "")
API_BASE = os.getenv("DISCORD_API_BASE", "https://discord.com/api/v10")

GUILD_VOICE = 2

app = FastAPI(title="Shiftwatch Bot Service")

log = logging.getLogger("shiftwatch-bot")


class NotifyIn(BaseModel):
    channel_id: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1, max_length=2000)


class DirectMessageIn(BaseModel):
    user_id: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1, max_length=2000)


class PromptIn(BaseModel):
    channel_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1, max_length=2000)
    token: str = Field(..., min_length=1, description="Confirmation token echoed in button custom ids")


class BoardIn(BaseModel):
    channel_id: str = Field(..., min_length=1)
    message_id: str | None = None
    text: str = Field(..., min_length=1, max_length=2000)


class VoiceResolveIn(BaseModel):
    channel_id: str = Field(..., min_length=1)
    fallback_label: str = "Model"


class VoiceRenameIn(BaseModel):
    channel_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)


class DisplayNameIn(BaseModel):
    guild_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)


def _api(method: str, path: str, payload: dict[str, Any] | None = None) -> Any:
    if not DISCORD_TOKEN:
        raise HTTPException(status_code=500, detail="DISCORD_TOKEN is not configured")

    data = json.dumps(payload, ensure_ascii=False).encode("utf-8") if payload is not None else None
    req = urllib.request.Request(
        API_BASE + path,
        data=data,
        method=method,
        headers={
            "Authorization": f"Bot {DISCORD_TOKEN}",
            "Content-Type": "application/json",
            "User-Agent": "shiftwatch-bot (https://github.com, 1.0)",
        },
    )
    try:
        with urllib.request.urlopen(req, timeout=7) as resp:
            body = resp.read().decode("utf-8", errors="ignore")
            return json.loads(body) if body else {}
    except urllib.error.HTTPError as e:
        body = e.read().decode("utf-8", errors="ignore")
        log.warning("discord %s %s failed status=%s body=%s", method, path, e.code, body[:300])
        raise HTTPException(status_code=502, detail=f"discord error {e.code}")
    except Exception as e:
        raise HTTPException(status_code=502, detail=f"discord error: {e}")


def _check_secret(request: Request) -> None:
    got = request.headers.get("X-Bot-Secret", "")
    if BOT_SERVICE_SECRET and got != BOT_SERVICE_SECRET:
        raise HTTPException(status_code=401, detail="bad secret")


def _send(channel_id: str, body: dict[str, Any]) -> str:
    msg = _api("POST", f"/channels/{channel_id}/messages", body)
    return str(msg.get("id", ""))


@app.get("/health")
def health():
    return {"ok": True}


@app.post("/notify")
def notify(payload: NotifyIn, request: Request):
    _check_secret(request)
    return {"ok": True, "message_id": _send(payload.channel_id, {"content": payload.text})}


@app.post("/dm")
def direct_message(payload: DirectMessageIn, request: Request):
    _check_secret(request)
    dm = _api("POST", "/users/@me/channels", {"recipient_id": payload.user_id})
    return {"ok": True, "message_id": _send(str(dm["id"]), {"content": payload.text})}


@app.post("/prompt")
def prompt(payload: PromptIn, request: Request):
    """Post a confirm/cancel prompt. Button presses are forwarded to the backend by the command gateway."""
    _check_secret(request)
    components = [
        {
            "type": 1,
            "components": [
                {"type": 2, "style": 3, "label": "Confirm clock out", "emoji": {"name": "✅"},
                 "custom_id": f"clockout:{payload.token}:confirm"},
                {"type": 2, "style": 4, "label": "Cancel", "emoji": {"name": "❌"},
                 "custom_id": f"clockout:{payload.token}:cancel"},
            ],
        }
    ]
    body = {
        "content": f"<@{payload.user_id}> {payload.text}",
        "components": components,
        "allowed_mentions": {"users": [payload.user_id]},
    }
    return {"ok": True, "message_id": _send(payload.channel_id, body)}


@app.post("/board")
def board(payload: BoardIn, request: Request):
    """Edit the board message in place, or post a fresh one if it is gone."""
    _check_secret(request)
    if payload.message_id:
        try:
            _api("PATCH", f"/channels/{payload.channel_id}/messages/{payload.message_id}", {"content": payload.text})
            return {"ok": True, "message_id": payload.message_id}
        except HTTPException:
            log.info("board message %s not editable, posting a new one", payload.message_id)
    return {"ok": True, "message_id": _send(payload.channel_id, {"content": payload.text})}


@app.post("/voice/resolve")
def voice_resolve(payload: VoiceResolveIn, request: Request):
    """Find the single voice channel in the text channel's category, and the model label.

    The label is the category name, else the text channel name up to the first '-'.
    """
    _check_secret(request)
    fallback = {"ok": True, "voice_channel_id": None, "label": payload.fallback_label}
    try:
        text_ch = _api("GET", f"/channels/{payload.channel_id}")
    except HTTPException:
        return fallback

    guild_id = text_ch.get("guild_id")
    parent_id = text_ch.get("parent_id")
    if not guild_id:
        return fallback

    name = text_ch.get("name") or ""
    label = (name.split("-")[0] if "-" in name else name) or payload.fallback_label
    if not parent_id:
        return {"ok": True, "voice_channel_id": None, "label": label}

    try:
        channels = _api("GET", f"/guilds/{guild_id}/channels")
    except HTTPException:
        return {"ok": True, "voice_channel_id": None, "label": label}

    for c in channels:
        if str(c.get("id")) == str(parent_id) and c.get("name"):
            label = c["name"]
    voices = [c for c in channels if c.get("type") == GUILD_VOICE and str(c.get("parent_id")) == str(parent_id)]
    voice_id = str(voices[0]["id"]) if len(voices) == 1 else None
    return {"ok": True, "voice_channel_id": voice_id, "label": label}


@app.post("/voice/rename")
def voice_rename(payload: VoiceRenameIn, request: Request):
    _check_secret(request)
    _api("PATCH", f"/channels/{payload.channel_id}", {"name": payload.name})
    return {"ok": True}


@app.post("/members/display-name")
def display_name(payload: DisplayNameIn, request: Request):
    _check_secret(request)
    member = _api("GET", f"/guilds/{payload.guild_id}/members/{payload.user_id}")
    user = member.get("user") or {}
    name = member.get("nick") or user.get("global_name") or user.get("username")
    return {"ok": True, "display_name": name}
