from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from shiftwatch.core.errors import NotFoundError
from shiftwatch.models import Fine


def create_fine(
    db: Session,
    *,
    guild_id: str,
    user_id: str,
    amount: float,
    reason: str,
    issued_at: datetime,
    shift_id: int | None = None,
    model: str | None = None,
    commit: bool = True,
) -> Fine:
    fine = Fine(
        guild_id=guild_id,
        user_id=user_id,
        amount=amount,
        reason=reason,
        issued_at=issued_at,
        shift_id=shift_id,
        model=model,
    )
    db.add(fine)
    if commit:
        db.commit()
        db.refresh(fine)
    else:
        db.flush()
    return fine


def delete_fine(db: Session, fine_id: int) -> int:
    fine = db.get(Fine, fine_id)
    if fine is None:
        return 0
    db.delete(fine)
    db.commit()
    return 1


def pardon_fine(db: Session, fine_id: int) -> None:
    if not delete_fine(db, fine_id):
        raise NotFoundError("Fine not found.")


def list_fines_for_user(db: Session, user_id: str, limit: int = 25) -> list[Fine]:
    """Most recent first."""
    return list(
        db.execute(
            select(Fine).where(Fine.user_id == user_id).order_by(Fine.id.desc()).limit(limit)
        ).scalars()
    )
