from enum import Enum


class MonitorState(Enum):
    IDLE = "IDLE"
    WAITING_FOR_RATE = "WAITING_FOR_RATE"
    ESTIMATING = "ESTIMATING"
    STALLED = "STALLED"
    ALERTED = "ALERTED"
