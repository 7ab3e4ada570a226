"""
Logging setup shared by the web app and the CLI scripts.

- Console: configured level (default INFO)
- File: same level, TimedRotatingFileHandler rolling daily (skipped in tests)
"""

import logging
import os
import sys
from logging.handlers import TimedRotatingFileHandler

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_BACKUP_COUNT = 7

# Loggers that flood the output at INFO
NOISY_LOGGERS = [
    "sqlalchemy.engine",
    "werkzeug",
]


def setup_logging(app):
    """Configure the root logger from the app config.

    Args:
        app: Flask application; reads LOG_LEVEL, LOG_DIR and LOG_TO_FILE.

    Returns:
        The configured root logger.
    """
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    log_file = None
    if app.config.get("LOG_TO_FILE") and not app.config.get("TESTING"):
        log_dir = app.config["LOG_DIR"]
        os.makedirs(log_dir, exist_ok=True)
        log_file = os.path.join(log_dir, "split_ledger.log")

        file_handler = TimedRotatingFileHandler(
            filename=log_file,
            when="midnight",
            interval=1,
            backupCount=LOG_FILE_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.suffix = "%Y-%m-%d"
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    root_logger.info(f"Logging initialised ({logging.getLevelName(level)})")
    if log_file:
        root_logger.info(f"  - file: {log_file} (daily rotation, {LOG_FILE_BACKUP_COUNT} days kept)")

    return root_logger
