import asyncio
import logging
import signal
import sys

from dotenv import load_dotenv

from controllers.battery import BatteryController
from models.errors import MonitorError
from monitor_runner import MonitorRunner
from monitor_session import MonitorSession
from services.alert_notifier import AlertNotifier
from services.monitor_config import MonitorConfig
from utils.logger import setup_logging
from webapp.server import attach_runner, start_web_server_thread


async def main():
    setup_logging()
    config = MonitorConfig.from_env()

    logging.info("Starting charge monitor...")

    session = MonitorSession(config)
    session.add_listener(AlertNotifier(config))
    runner = MonitorRunner(BatteryController(), session=session, config=config)

    def handle_stop_signal(signum, frame):
        logging.info("Stop signal received, stopping monitor...")
        runner.stop()
        logging.info("Cleanup complete, exiting.")
        sys.exit(0)

    signal.signal(signal.SIGTERM, handle_stop_signal)
    signal.signal(signal.SIGINT, handle_stop_signal)

    if config.webapp_enabled:
        attach_runner(runner)
        start_web_server_thread(config.webapp_host, config.webapp_port)
        logging.info("Status API listening on %s:%s", config.webapp_host, config.webapp_port)

    if config.autostart:
        try:
            runner.start()
        except MonitorError as exc:
            logging.error("Monitor: Could not start monitoring: %s", exc)
            if not config.webapp_enabled:
                return

    await runner.run()


if __name__ == "__main__":
    load_dotenv()
    asyncio.run(main())
