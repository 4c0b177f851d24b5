from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from shiftwatch.auth.deps import Actor, get_actor
from shiftwatch.core.clock import fmt_hm, utcnow
from shiftwatch.core.db import get_db
from shiftwatch.core.deps import get_confirmations, get_sink
from shiftwatch.core.errors import ShiftwatchError, http_status_for
from shiftwatch.services import attendance
from shiftwatch.services.confirmations import ConfirmationRegistry
from shiftwatch.services.notify import BotServiceClient
from shiftwatch.services.settings_store import RuntimeSettings

router = APIRouter(prefix="/attendance", tags=["attendance"])


class ClockInIn(BaseModel):
    channel_id: str | None = Field(default=None, max_length=32, description="Channel the command was run in")
    guild_id: str | None = Field(default=None, max_length=32)


class ClockOutIn(BaseModel):
    channel_id: str | None = Field(default=None, max_length=32)


class ConfirmationAnswerIn(BaseModel):
    confirm: bool


@router.post("/clock-in")
def clock_in(
    payload: ClockInIn,
    db: Session = Depends(get_db),
    sink: BotServiceClient = Depends(get_sink),
    actor: Actor = Depends(get_actor),
):
    now = utcnow()
    try:
        res = attendance.clock_in(
            db,
            sink,
            sink,
            user_id=actor.user_id,
            channel_id=payload.channel_id,
            guild_id=payload.guild_id,
            now=now,
        )
    except ShiftwatchError as e:
        raise HTTPException(status_code=http_status_for(e), detail=str(e))

    tz = RuntimeSettings(db).default_tz()
    kind = "Clocked in (ad-hoc)" if res.adhoc else "Clocked in"
    return {
        "ok": True,
        "shift_id": res.shift.id,
        "adhoc": res.adhoc,
        "late_minutes": max(res.late_minutes, 0),
        "note": res.note,
        "message": f"{kind} at {fmt_hm(now, tz)} {tz}.",
    }


@router.post("/clock-out")
async def clock_out(
    payload: ClockOutIn,
    db: Session = Depends(get_db),
    sink: BotServiceClient = Depends(get_sink),
    confirmations: ConfirmationRegistry = Depends(get_confirmations),
    actor: Actor = Depends(get_actor),
):
    """Clock out. Before the scheduled end this waits for the user's confirmation."""
    try:
        res = await attendance.clock_out(
            db,
            sink,
            sink,
            confirmations,
            user_id=actor.user_id,
            channel_id=payload.channel_id,
            now=utcnow(),
        )
    except ShiftwatchError as e:
        raise HTTPException(status_code=http_status_for(e), detail=str(e))

    if res.outcome is attendance.ClockOutOutcome.CANCELLED:
        return {"ok": False, "status": res.outcome.value, "shift_id": res.shift.id, "message": "❌ Clock-out cancelled."}

    tz = RuntimeSettings(db).default_tz()
    return {
        "ok": True,
        "status": res.outcome.value,
        "shift_id": res.shift.id,
        "early": res.early,
        "message": f"Clocked out at {fmt_hm(res.clock_out_at, tz)} {tz}.",
    }


@router.post("/confirmations/{token}")
async def answer_confirmation(
    token: str,
    payload: ConfirmationAnswerIn,
    confirmations: ConfirmationRegistry = Depends(get_confirmations),
    actor: Actor = Depends(get_actor),
):
    if not confirmations.respond(token, actor.user_id, payload.confirm):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No pending confirmation")
    return {"ok": True}
