from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from shiftwatch.auth.deps import Actor, get_actor
from shiftwatch.auth.guards import require_admin
from shiftwatch.core.clock import parse_local, utcnow
from shiftwatch.core.config import settings
from shiftwatch.core.db import get_db
from shiftwatch.core.deps import get_sink
from shiftwatch.core.errors import ShiftwatchError, http_status_for
from shiftwatch.models import Shift
from shiftwatch.services import shifts as store
from shiftwatch.services.board import update_schedule_board
from shiftwatch.services.notify import BotServiceClient
from shiftwatch.services.settings_store import RuntimeSettings

router = APIRouter(prefix="/shifts", tags=["shifts"])


class ShiftCreateIn(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=32)
    channel_id: str = Field(..., min_length=1, max_length=32)
    start: str = Field(..., description="Local ISO, e.g. 2025-08-23T14:00")
    end: str = Field(..., description="Local ISO, e.g. 2025-08-23T22:00")
    timezone: str | None = Field(default=None, description="IANA TZ (default: runtime default_tz)")
    model: str | None = Field(default=None, max_length=100)
    voice_channel_id: str | None = Field(default=None, max_length=32)


def shift_out(s: Shift) -> dict:
    end = s.end_local
    return {
        "id": s.id,
        "user_id": s.user_id,
        "channel_id": s.channel_id,
        "start": s.start_local.isoformat(),
        "end": end.isoformat() if end else None,
        "tz": s.tz,
        "model": s.model,
        "voice_channel_id": s.voice_channel_id,
    }


@router.post("")
def create_shift(
    payload: ShiftCreateIn,
    db: Session = Depends(get_db),
    sink: BotServiceClient = Depends(get_sink),
    admin: Actor = Depends(require_admin),
):
    now = utcnow()
    tz = (payload.timezone or "").strip() or RuntimeSettings(db).default_tz()
    try:
        shift = store.create_shift(
            db,
            guild_id=settings.GUILD_ID,
            user_id=payload.user_id,
            channel_id=payload.channel_id,
            start_at=parse_local(payload.start, tz),
            end_at=parse_local(payload.end, tz),
            tz=tz,
            model=payload.model,
            voice_channel_id=payload.voice_channel_id,
            now=now,
        )
    except ShiftwatchError as e:
        raise HTTPException(status_code=http_status_for(e), detail=str(e))

    update_schedule_board(db, sink, now)
    return shift_out(shift)


@router.delete("/{shift_id}")
def remove_shift(
    shift_id: int,
    db: Session = Depends(get_db),
    sink: BotServiceClient = Depends(get_sink),
    admin: Actor = Depends(require_admin),
):
    try:
        store.remove_shift(db, shift_id)
    except ShiftwatchError as e:
        raise HTTPException(status_code=http_status_for(e), detail=str(e))

    update_schedule_board(db, sink, utcnow())
    return {"ok": True, "id": shift_id}


@router.get("/upcoming")
def list_upcoming(
    hours: int = Query(24, ge=1, le=24 * 14),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    rows = store.upcoming_shifts(db, utcnow(), hours=hours)
    return [shift_out(s) for s in rows]
