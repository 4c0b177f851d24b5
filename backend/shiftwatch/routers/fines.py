from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from shiftwatch.auth.deps import Actor, get_actor
from shiftwatch.auth.guards import require_admin
from shiftwatch.core.clock import fmt_date_hm
from shiftwatch.core.db import get_db
from shiftwatch.core.errors import ShiftwatchError, http_status_for
from shiftwatch.services.fines import list_fines_for_user, pardon_fine
from shiftwatch.services.settings_store import RuntimeSettings

router = APIRouter(prefix="/fines", tags=["fines"])


@router.get("")
def list_fines(
    user_id: str | None = Query(default=None, description="Target user (admins only, default: self)"),
    limit: int = Query(25, ge=1, le=100),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    target = user_id or actor.user_id
    if target != actor.user_id and not actor.is_admin:
        raise HTTPException(status_code=403, detail="You can only view your own fines.")

    tz = RuntimeSettings(db).default_tz()
    return [
        {
            "id": f.id,
            "amount": f.amount,
            "reason": f.reason,
            "issued_at": f.issued_at.isoformat(),
            "issued_local": fmt_date_hm(f.issued_at, tz),
            "shift_id": f.shift_id,
            "model": f.model,
        }
        for f in list_fines_for_user(db, target, limit=limit)
    ]


@router.delete("/{fine_id}")
def pardon(
    fine_id: int,
    db: Session = Depends(get_db),
    admin: Actor = Depends(require_admin),
):
    try:
        pardon_fine(db, fine_id)
    except ShiftwatchError as e:
        raise HTTPException(status_code=http_status_for(e), detail=str(e))
    return {"ok": True, "message": f"Fine #{fine_id} pardoned."}
