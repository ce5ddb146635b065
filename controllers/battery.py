import logging
from typing import Optional

import psutil

from models.battery import BatteryReading


class BatteryController:
    def __init__(self):
        self.last_reading: Optional[BatteryReading] = None

    def read(self) -> Optional[BatteryReading]:
        """Return the current battery reading, or None when the host exposes no battery."""
        try:
            battery = psutil.sensors_battery()
        except Exception:
            logging.warning("Battery: Failed to query battery sensor", exc_info=True)
            battery = None

        if battery is None:
            if self.last_reading is not None:
                logging.warning("Battery: Reading no longer available")
            self.last_reading = None
            return None

        reading = BatteryReading(level=float(battery.percent), charging=bool(battery.power_plugged))
        self.last_reading = reading
        return reading

    def is_available(self) -> bool:
        return self.read() is not None
