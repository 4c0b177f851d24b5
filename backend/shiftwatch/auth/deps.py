from __future__ import annotations

import hmac
from dataclasses import dataclass

from fastapi import Header, HTTPException, status

from shiftwatch.core.config import settings


@dataclass(frozen=True)
class Actor:
    """Who is issuing the command, as asserted by the bot service."""

    user_id: str
    is_admin: bool = False


def verify_bot_secret(x_bot_secret: str | None = Header(default=None)) -> None:
    expected = settings.BOT_SERVICE_SECRET
    if expected and not hmac.compare_digest(x_bot_secret or "", expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="bad secret")


def get_actor(
    x_actor_id: str | None = Header(default=None),
    x_actor_admin: str | None = Header(default=None),
    x_bot_secret: str | None = Header(default=None),
) -> Actor:
    verify_bot_secret(x_bot_secret)

    user_id = (x_actor_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    is_admin = (x_actor_admin or "").strip().lower() in ("1", "true", "yes")
    return Actor(user_id=user_id, is_admin=is_admin)
