import os
import logging
from logging.handlers import TimedRotatingFileHandler

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def create_default_formatter():
    return logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)


def setup_logging(folder_path: str = "logs"):
    is_dev_env = os.getenv("ENV") == "dev"
    os.makedirs(folder_path, exist_ok=True)

    log_handler = TimedRotatingFileHandler(
        filename=f"{folder_path}/log.txt",
        when="midnight",
        interval=1,
        backupCount=7,  # Keeps logs of the last 7 days
        encoding="utf-8",
    )
    log_handler.setFormatter(create_default_formatter())
    log_handler.setLevel(logging.DEBUG if is_dev_env else logging.INFO)

    logging.getLogger().addHandler(log_handler)

    # Console output for everything else
    logging.basicConfig(
        level=logging.DEBUG if is_dev_env else logging.INFO,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
    )
