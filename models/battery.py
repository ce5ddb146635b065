from dataclasses import dataclass


@dataclass(frozen=True)
class BatteryReading:
    level: float
    charging: bool

    def get_status(self):
        """Return the reading as a dictionary with 'level' and 'charging'."""
        return {"level": round(self.level), "charging": self.charging}
