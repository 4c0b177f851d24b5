from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from shiftwatch.auth.deps import Actor
from shiftwatch.auth.guards import require_admin
from shiftwatch.core.clock import utcnow
from shiftwatch.core.db import get_db
from shiftwatch.core.deps import get_scheduler, get_sink
from shiftwatch.core.errors import ShiftwatchError, http_status_for
from shiftwatch.services.board import update_schedule_board
from shiftwatch.services.notify import BotServiceClient
from shiftwatch.services.scheduler import Scheduler
from shiftwatch.services.settings_store import RuntimeSettings

router = APIRouter(prefix="/admin", tags=["admin"])


class FineAmountIn(BaseModel):
    amount: float = Field(..., ge=0)


class TimezoneIn(BaseModel):
    tz: str = Field(..., min_length=1, max_length=64)


class ChannelIn(BaseModel):
    channel_id: str = Field(..., min_length=1, max_length=32)


@router.post("/sync")
async def sync(
    db: Session = Depends(get_db),
    sink: BotServiceClient = Depends(get_sink),
    scheduler: Scheduler = Depends(get_scheduler),
    admin: Actor = Depends(require_admin),
):
    """Refresh the schedule board and run a scheduler tick right away."""
    board = await asyncio.to_thread(update_schedule_board, db, sink, utcnow())
    result = await scheduler.tick()
    return {
        "ok": True,
        "board_updated": board,
        "tick": result.as_dict() if result is not None else None,
        "tick_skipped": result is None,
    }


@router.get("/settings")
def get_settings(db: Session = Depends(get_db), admin: Actor = Depends(require_admin)):
    return RuntimeSettings(db).as_dict()


@router.put("/settings/fine")
def set_fine(payload: FineAmountIn, db: Session = Depends(get_db), admin: Actor = Depends(require_admin)):
    try:
        RuntimeSettings(db).set_fine_amount(payload.amount)
    except ShiftwatchError as e:
        raise HTTPException(status_code=http_status_for(e), detail=str(e))
    return {"ok": True, "fine_amount": payload.amount}


@router.put("/settings/default-tz")
def set_default_tz(payload: TimezoneIn, db: Session = Depends(get_db), admin: Actor = Depends(require_admin)):
    try:
        RuntimeSettings(db).set_default_tz(payload.tz)
    except ShiftwatchError as e:
        raise HTTPException(status_code=http_status_for(e), detail=str(e))
    return {"ok": True, "default_tz": payload.tz.strip()}


@router.put("/settings/schedule-channel")
def set_schedule_channel(
    payload: ChannelIn,
    db: Session = Depends(get_db),
    sink: BotServiceClient = Depends(get_sink),
    admin: Actor = Depends(require_admin),
):
    RuntimeSettings(db).set_schedule_channel_id(payload.channel_id)
    board = update_schedule_board(db, sink, utcnow())
    return {"ok": True, "schedule_channel_id": payload.channel_id, "board_updated": board}


@router.put("/settings/logs-channel")
def set_logs_channel(payload: ChannelIn, db: Session = Depends(get_db), admin: Actor = Depends(require_admin)):
    RuntimeSettings(db).set_logs_channel_id(payload.channel_id)
    return {"ok": True, "logs_channel_id": payload.channel_id}
