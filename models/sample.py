from dataclasses import dataclass


@dataclass(frozen=True)
class Sample:
    """A single charging observation; at_time is a monotonic timestamp in seconds."""

    level: float
    at_time: float
