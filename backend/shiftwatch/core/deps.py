from __future__ import annotations

from fastapi import Request

from shiftwatch.services.confirmations import ConfirmationRegistry
from shiftwatch.services.notify import BotServiceClient
from shiftwatch.services.scheduler import Scheduler


def get_sink(request: Request) -> BotServiceClient:
    """The delivery client serves as both notification and directory sink."""
    return request.app.state.sink


def get_confirmations(request: Request) -> ConfirmationRegistry:
    return request.app.state.confirmations


def get_scheduler(request: Request) -> Scheduler:
    return request.app.state.scheduler
