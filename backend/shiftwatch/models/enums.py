import enum


class EventKind(str, enum.Enum):
    REMIND = "remind"
    START = "start"
    LATEFINE = "latefine"
