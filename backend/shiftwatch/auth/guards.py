from __future__ import annotations

from fastapi import Depends, HTTPException, status

from shiftwatch.auth.deps import Actor, get_actor


def require_admin(actor: Actor = Depends(get_actor)) -> Actor:
    if not actor.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admins only.",
        )
    return actor
