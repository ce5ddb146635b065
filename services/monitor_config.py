import logging
import os
from dataclasses import dataclass

MIN_TARGET_PERCENT = 50
MAX_TARGET_PERCENT = 100
DEFAULT_TARGET_PERCENT = 90


def _int_env(name: str, default: int) -> int:
    """Parse an int env var with a safe fallback."""
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _target_env(name: str, default: int) -> int:
    target = _int_env(name, default)
    if not is_valid_target(target):
        logging.warning(
            "Config: %s=%s outside %s..%s; using %s",
            name,
            target,
            MIN_TARGET_PERCENT,
            MAX_TARGET_PERCENT,
            default,
        )
        return default
    return target


@dataclass
class MonitorConfig:
    target_percent: int
    poll_interval_sec: float
    window_capacity: int
    rate_sample_count: int
    min_history_samples: int
    alert_retry_attempts: int
    alert_retry_delay_sec: float
    autostart: bool
    webapp_enabled: bool
    webapp_host: str
    webapp_port: int

    @classmethod
    def from_env(cls) -> "MonitorConfig":
        return cls(
            target_percent=_target_env("TARGET_PERCENT", DEFAULT_TARGET_PERCENT),
            poll_interval_sec=max(_float_env("POLL_INTERVAL_SEC", 2.0), 0.1),
            window_capacity=max(_int_env("WINDOW_CAPACITY", 50), 2),
            rate_sample_count=max(_int_env("RATE_SAMPLE_COUNT", 10), 2),
            min_history_samples=max(_int_env("MIN_HISTORY_SAMPLES", 5), 1),
            alert_retry_attempts=max(_int_env("ALERT_RETRY_ATTEMPTS", 2), 1),
            alert_retry_delay_sec=max(_float_env("ALERT_RETRY_DELAY_SEC", 0.1), 0.0),
            autostart=_bool_env("MONITOR_AUTOSTART", True),
            webapp_enabled=_bool_env("WEBAPP_ENABLED", False),
            webapp_host=os.getenv("WEBAPP_HOST", "0.0.0.0"),
            webapp_port=_int_env("WEBAPP_PORT", 8080),
        )


def is_valid_target(target) -> bool:
    """Return True for whole-number targets inside the supported range."""
    if isinstance(target, bool):
        return False
    try:
        value = float(target)
    except (TypeError, ValueError):
        return False
    return value.is_integer() and MIN_TARGET_PERCENT <= value <= MAX_TARGET_PERCENT
