import asyncio
import logging
import threading
import time
from typing import List, Optional

from models.battery import BatteryReading
from models.errors import NoBatterySource
from models.events import MonitorEvent
from monitor_session import MonitorListener, MonitorSession
from services.monitor_config import MonitorConfig
from services.runtime_status import RuntimeStatusStore, runtime_status_store
from utils.time_formatter import format_minutes


# Lightweight clock wrapper to ease testing.
class Clock:
    def monotonic(self) -> float:
        return time.monotonic()


class StatusListener(MonitorListener):
    def __init__(self, status_store: RuntimeStatusStore):
        self.status_store = status_store

    def on_alert_fired(self, target: int):
        self.status_store.record_alert_fired()
        self.status_store.set_message(
            f"It's time to unplug your charger! Battery reached {target}%, unplugging now slows battery wear."
        )

    def on_alert_reset(self):
        self.status_store.record_alert_reset()
        self.status_store.set_message("Charger unplugged; alert re-armed for the next charge")


class MonitorRunner:
    """
    Polls the battery on a fixed cadence and feeds the session.

    Session calls are serialized with a lock because the status web API
    may start or stop monitoring from its own thread.
    """

    def __init__(
        self,
        battery,
        session: Optional[MonitorSession] = None,
        config: Optional[MonitorConfig] = None,
        clock: Optional[Clock] = None,
        status_store: Optional[RuntimeStatusStore] = None,
    ):
        self.config = config or MonitorConfig.from_env()
        self.session = session or MonitorSession(self.config)
        self.battery = battery
        self.clock = clock or Clock()
        self.status_store = status_store or runtime_status_store
        self.lock = threading.Lock()
        self.last_reading: Optional[BatteryReading] = None
        self.session.add_listener(StatusListener(self.status_store))

    def _publish_battery(self, reading: Optional[BatteryReading]):
        self.last_reading = reading
        self.status_store.update_battery(reading.get_status() if reading else None)

    def _publish_session(self):
        snapshot = self.session.snapshot()
        # The ETA is only meaningful while the charger is plugged in.
        charging = self.last_reading is not None and self.last_reading.charging
        estimate_text = format_minutes(self.session.last_estimate_minutes) if self.session.running and charging else None
        self.status_store.update_monitor(snapshot, estimate_text)

    def start(self, target=None):
        target = self.session.target if target is None else target
        reading = self.battery.read()
        self._publish_battery(reading)
        with self.lock:
            try:
                self.session.start(target, reading)
            except NoBatterySource:
                self.status_store.set_message("Battery source not available")
                raise
            self._publish_session()
        self.status_store.set_message(f"Monitoring active! Alert at {self.session.target}%")

    def stop(self):
        with self.lock:
            was_running = self.session.running
            self.session.stop()
            self._publish_session()
        if was_running:
            self.status_store.set_message("Monitoring stopped")

    def tick(self) -> List[MonitorEvent]:
        reading = self.battery.read()
        self._publish_battery(reading)
        if reading is None:
            logging.warning("Monitor: No battery reading; skipping this poll")
            return []

        with self.lock:
            events = self.session.ingest(reading.level, reading.charging, self.clock.monotonic())
            self._publish_session()
        return events

    async def run(self):
        logging.info(
            "Monitor: Active config target=%s%% poll=%ss window=%s rate_samples=%s min_history=%s",
            self.config.target_percent,
            self.config.poll_interval_sec,
            self.config.window_capacity,
            self.config.rate_sample_count,
            self.config.min_history_samples,
        )
        while True:
            try:
                self.tick()
            except Exception:
                logging.warning("Monitor: Unexpected error in tick", exc_info=True)
            await asyncio.sleep(self.config.poll_interval_sec)
