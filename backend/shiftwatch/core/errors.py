from __future__ import annotations


class ShiftwatchError(Exception):
    """Base class for errors surfaced to command callers."""


class ValidationError(ShiftwatchError):
    """Bad input: unknown timezone, malformed instant, end <= start."""


class ConflictError(ShiftwatchError):
    """The request clashes with current state (already clocked in, channel busy...)."""


class NotFoundError(ConflictError):
    pass


class DeliveryFailure(ShiftwatchError):
    """A notification or directory call failed. Never fatal to the caller."""


class ConfirmationTimeout(ShiftwatchError):
    """The early clock-out confirmation window elapsed without an answer."""


def http_status_for(e: ShiftwatchError) -> int:
    if isinstance(e, NotFoundError):
        return 404
    if isinstance(e, ConflictError):
        return 409
    if isinstance(e, ConfirmationTimeout):
        return 408
    if isinstance(e, ValidationError):
        return 400
    return 500
