from .enums import EventKind
from .shift import Shift
from .attendance import Attendance
from .fine import Fine
from .shift_event import ShiftEvent
from .setting import Setting

__all__ = [
    "EventKind",
    "Shift",
    "Attendance",
    "Fine",
    "ShiftEvent",
    "Setting",
]
