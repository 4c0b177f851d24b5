"""Short-lived yes/no confirmations, answered by exactly one user.

A pending confirmation is keyed by a random token. The waiting side awaits
an asyncio future bounded by a timeout; the answering side resolves it from
another request handler.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import secrets
import time
from dataclasses import dataclass, field

from shiftwatch.core.config import settings
from shiftwatch.core.errors import ConfirmationTimeout

log = logging.getLogger("shiftwatch.confirmations")


class Decision(str, enum.Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


@dataclass
class PendingConfirmation:
    token: str
    user_id: str
    expires_at: float
    future: asyncio.Future = field(repr=False)
    answered: bool = False


class ConfirmationRegistry:
    def __init__(self, timeout: float | None = None):
        self.timeout = settings.CONFIRM_TIMEOUT_SECONDS if timeout is None else timeout
        self._pending: dict[str, PendingConfirmation] = {}

    def open(self, user_id: str) -> PendingConfirmation:
        """Must be called from inside the event loop that will wait on it."""
        loop = asyncio.get_running_loop()
        pending = PendingConfirmation(
            token=secrets.token_urlsafe(16),
            user_id=str(user_id),
            expires_at=time.monotonic() + self.timeout,
            future=loop.create_future(),
        )
        self._pending[pending.token] = pending
        return pending

    def respond(self, token: str, user_id: str, confirmed: bool) -> bool:
        """Answer a pending confirmation. False if unknown, expired, answered, or not the owner."""
        pending = self._pending.get(token)
        if pending is None or pending.answered:
            return False
        if pending.user_id != str(user_id):
            log.info("ignoring confirmation answer from user_id=%s (owner %s)", user_id, pending.user_id)
            return False
        if time.monotonic() >= pending.expires_at or pending.future.done():
            return False

        pending.answered = True
        decision = Decision.CONFIRMED if confirmed else Decision.CANCELLED
        pending.future.get_loop().call_soon_threadsafe(_resolve, pending.future, decision)
        return True

    async def wait(self, pending: PendingConfirmation) -> Decision:
        """Wait for the owner's answer. Raises ConfirmationTimeout when the window elapses.

        The window is measured from here, so a slow prompt delivery does not eat into it.
        """
        pending.expires_at = time.monotonic() + self.timeout
        try:
            return await asyncio.wait_for(pending.future, timeout=self.timeout)
        except asyncio.TimeoutError:
            raise ConfirmationTimeout("Clock-out request timed out.")
        finally:
            self._pending.pop(pending.token, None)

    def discard(self, pending: PendingConfirmation) -> None:
        self._pending.pop(pending.token, None)
        if not pending.future.done():
            pending.future.cancel()

    def __len__(self) -> int:
        return len(self._pending)


def _resolve(future: asyncio.Future, decision: Decision) -> None:
    if not future.done():
        future.set_result(decision)
