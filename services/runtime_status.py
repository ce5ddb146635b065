from __future__ import annotations

import copy
import threading
from datetime import datetime, timezone
from typing import Any, Dict


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class RuntimeStatusStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._data: Dict[str, Any] = {}
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self._data = {
                "generated_at": utc_now_iso(),
                "battery": {
                    "available": False,
                    "level": None,
                    "charging": None,
                    "updated_at": None,
                },
                "monitor": {
                    "current_state": None,
                    "running": False,
                    "target": None,
                    "alert_armed": True,
                    "estimate_minutes": None,
                    "estimate_text": None,
                    "window_size": 0,
                    "updated_at": None,
                    "last_transition": None,
                },
                "alert": {
                    "last_fired_at": None,
                    "last_reset_at": None,
                    "fired_count": 0,
                },
                "message": "",
            }

    def _touch(self) -> None:
        self._data["generated_at"] = utc_now_iso()

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._data)

    def update_battery(self, status: Dict[str, Any] | None) -> None:
        with self._lock:
            battery = self._data.setdefault("battery", {})
            battery["available"] = status is not None
            battery["level"] = status.get("level") if status else None
            battery["charging"] = status.get("charging") if status else None
            battery["updated_at"] = utc_now_iso()
            self._touch()

    def update_monitor(self, snapshot: Dict[str, Any], estimate_text: str | None = None) -> None:
        with self._lock:
            monitor = self._data.setdefault("monitor", {})
            ts = utc_now_iso()
            transition = snapshot.get("last_transition")
            previous = monitor.get("last_transition") or {}
            if transition and transition.get("seq") != previous.get("seq"):
                monitor["last_transition"] = {**transition, "timestamp": ts}
            for key in ("current_state", "running", "target", "alert_armed", "estimate_minutes", "window_size"):
                monitor[key] = snapshot.get(key)
            monitor["estimate_text"] = estimate_text
            monitor["updated_at"] = ts
            self._touch()

    def record_alert_fired(self, timestamp: str | None = None) -> None:
        with self._lock:
            alert = self._data.setdefault("alert", {})
            alert["last_fired_at"] = timestamp or utc_now_iso()
            alert["fired_count"] = alert.get("fired_count", 0) + 1
            self._touch()

    def record_alert_reset(self, timestamp: str | None = None) -> None:
        with self._lock:
            alert = self._data.setdefault("alert", {})
            alert["last_reset_at"] = timestamp or utc_now_iso()
            self._touch()

    def set_message(self, message: str) -> None:
        with self._lock:
            self._data["message"] = message
            self._touch()


runtime_status_store = RuntimeStatusStore()
