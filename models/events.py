from dataclasses import dataclass
from enum import Enum
from typing import Optional


class MonitorEventType(Enum):
    ESTIMATE_UPDATED = "estimate_updated"
    ALERT_FIRED = "alert_fired"
    ALERT_RESET = "alert_reset"


@dataclass(frozen=True)
class MonitorEvent:
    type: MonitorEventType
    minutes: Optional[int] = None
    target: Optional[int] = None

    @classmethod
    def estimate_updated(cls, minutes: int) -> "MonitorEvent":
        return cls(MonitorEventType.ESTIMATE_UPDATED, minutes=minutes)

    @classmethod
    def alert_fired(cls, target: int) -> "MonitorEvent":
        return cls(MonitorEventType.ALERT_FIRED, target=target)

    @classmethod
    def alert_reset(cls) -> "MonitorEvent":
        return cls(MonitorEventType.ALERT_RESET)
