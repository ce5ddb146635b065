import asyncio
import logging
import subprocess
import sys
from typing import Callable, Optional

from monitor_session import MonitorListener
from services.monitor_config import MonitorConfig
from utils.time_formatter import format_minutes

ALERT_TITLE = "Time to Unplug!"


def alert_message(target: int) -> str:
    return f"Battery at {target}%! Unplug now to save your battery from faster wear."


def send_desktop_notification(title: str, message: str):
    """Send a notification via notify-send (works with mako, dunst, etc.)."""
    cmd = ["notify-send", "-u", "critical", title, message]
    subprocess.run(cmd, timeout=5, capture_output=True, check=True)


def ring_bell():
    sys.stdout.write("\a")
    sys.stdout.flush()


class AlertNotifier(MonitorListener):
    """
    Delivers the unplug alert outside the session.

    Desktop delivery runs as a background task and is retried with an
    exponential backoff, since notification daemons are not always ready.
    """

    def __init__(
        self,
        config: Optional[MonitorConfig] = None,
        sender: Optional[Callable[[str, str], None]] = None,
        bell: Optional[Callable[[], None]] = None,
    ):
        self.config = config or MonitorConfig.from_env()
        self.sender = sender or send_desktop_notification
        self.bell = bell or ring_bell
        self.delivery_task: Optional[asyncio.Task] = None

    def on_estimate_updated(self, minutes: int):
        logging.info("Alert: Estimated time to target: %s", format_minutes(minutes))

    def on_alert_fired(self, target: int):
        logging.info("Alert: %s", alert_message(target))
        try:
            self.bell()
        except OSError:
            logging.warning("Alert: Failed to ring terminal bell", exc_info=True)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            asyncio.run(self.deliver(target))
            return
        self.delivery_task = loop.create_task(self.deliver(target))

    def on_alert_reset(self):
        logging.info("Alert: Charger unplugged; alert re-armed for the next charge")

    async def deliver(self, target: int) -> bool:
        attempts = self.config.alert_retry_attempts
        delay = self.config.alert_retry_delay_sec
        message = alert_message(target)

        for attempt in range(1, attempts + 1):
            try:
                await asyncio.to_thread(self.sender, ALERT_TITLE, message)
                logging.info("Alert: Notification delivered (attempt %s/%s)", attempt, attempts)
                return True
            except (OSError, subprocess.SubprocessError):
                logging.warning("Alert: Notification attempt %s/%s failed", attempt, attempts, exc_info=True)

            if attempt < attempts:
                await asyncio.sleep(delay)
                delay *= 2

        logging.warning("Alert: Giving up on notification after %s attempts", attempts)
        return False
