import logging
import math
from typing import Any, Dict, List, Optional

from models.battery import BatteryReading
from models.errors import InvalidTarget, NoBatterySource, SessionAlreadyRunning, TargetLocked
from models.events import MonitorEvent, MonitorEventType
from models.monitor_state import MonitorState
from models.sample import Sample
from services.monitor_config import (
    DEFAULT_TARGET_PERCENT,
    MAX_TARGET_PERCENT,
    MIN_TARGET_PERCENT,
    MonitorConfig,
    is_valid_target,
)
from services.sample_window import SampleWindow


class MonitorListener:
    """Receives session events. Subclasses override the hooks they care about."""

    def on_estimate_updated(self, minutes: int):
        pass

    def on_alert_fired(self, target: int):
        pass

    def on_alert_reset(self):
        pass

    def dispatch(self, event: MonitorEvent):
        if event.type == MonitorEventType.ESTIMATE_UPDATED:
            self.on_estimate_updated(event.minutes)
        elif event.type == MonitorEventType.ALERT_FIRED:
            self.on_alert_fired(event.target)
        elif event.type == MonitorEventType.ALERT_RESET:
            self.on_alert_reset()


class MonitorSession:
    """
    Charge-target state machine advanced by explicit ingest() calls.

    The session never performs I/O. Callers must serialize start/stop/ingest.
    """

    def __init__(self, config: Optional[MonitorConfig] = None):
        self.config = config or MonitorConfig.from_env()
        self.window = SampleWindow(self.config.window_capacity)
        self.state = MonitorState.IDLE
        self.running = False
        self.alert_armed = True
        self.last_estimate_minutes: Optional[int] = None
        self.last_transition: Optional[Dict[str, Any]] = None
        self._target = DEFAULT_TARGET_PERCENT
        if is_valid_target(self.config.target_percent):
            self._target = int(float(self.config.target_percent))
        self._was_charging: Optional[bool] = None
        self._transition_seq = 0
        self._listeners: List[MonitorListener] = []

    @property
    def target(self) -> int:
        return self._target

    def add_listener(self, listener: MonitorListener):
        self._listeners.append(listener)

    def remove_listener(self, listener: MonitorListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def set_state(self, state: MonitorState, reason: str | None = None):
        if state == self.state:
            return
        logging.info(
            "Monitor: State transition %s -> %s%s",
            self.state.name,
            state.name,
            f" ({reason})" if reason else "",
        )
        self._transition_seq += 1
        self.last_transition = {
            "seq": self._transition_seq,
            "from": self.state.value,
            "to": state.value,
            "reason": reason,
        }
        self.state = state

    def set_target(self, target):
        if self.running:
            raise TargetLocked()
        if not is_valid_target(target):
            raise InvalidTarget(target, MIN_TARGET_PERCENT, MAX_TARGET_PERCENT)
        self._target = int(float(target))
        logging.info("Monitor: Target set to %s%%", self._target)

    def start(self, target, reading: Optional[BatteryReading]):
        if not is_valid_target(target):
            raise InvalidTarget(target, MIN_TARGET_PERCENT, MAX_TARGET_PERCENT)
        if self.running:
            raise SessionAlreadyRunning()
        if reading is None:
            logging.warning("Monitor: Cannot start, no battery reading available")
            raise NoBatterySource()

        self._target = int(float(target))
        self.window.clear()
        self.alert_armed = True
        self.last_estimate_minutes = None
        self._was_charging = None
        self.running = True
        self.set_state(MonitorState.WAITING_FOR_RATE, f"Monitoring started with target {self._target}%")

    def stop(self):
        if self.running:
            logging.info("Monitor: Stopping monitoring")
        self.window.clear()
        self.alert_armed = True
        self.last_estimate_minutes = None
        self._was_charging = None
        self.running = False
        self.set_state(MonitorState.IDLE, "Monitoring stopped")

    def _estimate_rate(self) -> Optional[float]:
        # History gate and slope both read the post-push window.
        if self.window.size() <= self.config.min_history_samples:
            return None
        rate = self.window.estimate_rate_per_minute(self.config.rate_sample_count)
        if rate is None or not math.isfinite(rate):
            return None
        return rate

    def _record_charging_sample(self, level: float, at_time: float) -> List[MonitorEvent]:
        self.window.push(Sample(level, at_time))
        rate = self._estimate_rate()

        if rate is None:
            if self.last_estimate_minutes is None:
                self.set_state(MonitorState.WAITING_FOR_RATE, "Collecting charging history")
            logging.debug("Monitor: Rate unavailable (window=%s)", self.window.size())
            return []

        if rate <= 0:
            # Keep the previous estimate until a positive rate replaces it.
            self.set_state(MonitorState.STALLED, f"rate {rate:.3f}%/min")
            return []

        eta = max(0, math.ceil((self._target - level) / rate))
        self.last_estimate_minutes = eta
        self.set_state(MonitorState.ESTIMATING, "Positive charge rate")
        logging.debug("Monitor: rate=%.3f%%/min level=%s target=%s eta=%smin", rate, level, self._target, eta)
        return [MonitorEvent.estimate_updated(eta)]

    def ingest(self, level: float, charging: bool, at_time: float) -> List[MonitorEvent]:
        """
        Advance the session with one polled reading.

        Returns the events emitted for this reading, after they have been
        delivered to listeners. Idle sessions ignore readings.
        """
        if not self.running:
            return []

        charging = bool(charging)
        events: List[MonitorEvent] = []

        if charging and self._was_charging is False:
            logging.info("Monitor: Charger connected at %s%%", level)
            self.window.clear()
            self.alert_armed = True
        self._was_charging = charging

        if charging and level < self._target:
            events.extend(self._record_charging_sample(level, at_time))

        if charging and level >= self._target and self.alert_armed:
            self.alert_armed = False
            self.set_state(MonitorState.ALERTED, f"Reached {level}% (target {self._target}%)")
            events.append(MonitorEvent.alert_fired(self._target))
        elif charging and level >= self._target:
            # Already fired this episode; back at target after a dip.
            self.set_state(MonitorState.ALERTED, f"Back at {level}% (alert already fired)")

        if not charging:
            was_alerted = not self.alert_armed
            self.window.clear()
            self.alert_armed = True
            if self.state in (MonitorState.ALERTED, MonitorState.ESTIMATING, MonitorState.STALLED):
                self.set_state(MonitorState.WAITING_FOR_RATE, "Charger disconnected")
            if was_alerted:
                events.append(MonitorEvent.alert_reset())

        self._dispatch(events)
        return events

    def _dispatch(self, events: List[MonitorEvent]):
        for event in events:
            for listener in list(self._listeners):
                try:
                    listener.dispatch(event)
                except Exception:
                    logging.warning(
                        "Monitor: Listener %s failed on %s", listener.__class__.__name__, event.type.value, exc_info=True
                    )

    def snapshot(self) -> Dict[str, Any]:
        return {
            "current_state": self.state.value,
            "running": self.running,
            "target": self._target,
            "alert_armed": self.alert_armed,
            "estimate_minutes": self.last_estimate_minutes,
            "window_size": self.window.size(),
            "last_transition": self.last_transition,
        }
