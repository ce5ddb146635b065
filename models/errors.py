class MonitorError(Exception):
    """Base class for errors raised by the monitor session."""

    code = "monitor_error"


class NoBatterySource(MonitorError):
    code = "no_battery_source"

    def __init__(self, message: str = "Battery source not available"):
        super().__init__(message)


class InvalidTarget(MonitorError):
    code = "invalid_target"

    def __init__(self, target, minimum: int, maximum: int):
        self.target = target
        super().__init__(f"Target {target!r} must be between {minimum} and {maximum}")


class SessionAlreadyRunning(MonitorError):
    code = "already_running"

    def __init__(self, message: str = "Monitoring is already active; stop it first"):
        super().__init__(message)


class TargetLocked(MonitorError):
    code = "target_locked"

    def __init__(self, message: str = "Target cannot change while monitoring is active"):
        super().__init__(message)
