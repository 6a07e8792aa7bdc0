
import logging
import sys
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

# Default logs directory, next to the package
LOGS_DIR = os.path.join(os.path.dirname(__file__), "logs")


class CustomFormatter(logging.Formatter):
    """Custom formatter with colors for console output"""

    format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s (%(filename)s:%(lineno)d)"

    FORMATS = {
        logging.DEBUG: "\x1b[38;20m" + format_str + "\x1b[0m",
        logging.INFO: "\x1b[34;20m" + format_str + "\x1b[0m",
        logging.WARNING: "\x1b[33;20m" + format_str + "\x1b[0m",
        logging.ERROR: "\x1b[31;20m" + format_str + "\x1b[0m",
        logging.CRITICAL: "\x1b[31;1m" + format_str + "\x1b[0m",
    }

    def format(self, record):
        log_fmt = self.FORMATS.get(record.levelno)
        formatter = logging.Formatter(log_fmt, datefmt="%Y-%m-%d %H:%M:%S")
        return formatter.format(record)


def setup_logger(
    name: str = "leveling_os",
    level: int = logging.INFO,
    logs_dir: Optional[str] = None,
    log_to_file: bool = True
) -> logging.Logger:
    """Configures and returns the package logger.

    Module loggers created with ``logging.getLogger(__name__)`` inside the
    package propagate to this one, so it only needs to be set up once.
    """

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Prevent duplicate handlers if function is called multiple times
    if logger.handlers:
        return logger

    # Console Handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(CustomFormatter())
    logger.addHandler(console_handler)

    if log_to_file:
        # File Handler (Rotating)
        # 5MB max size per file, keep last 5 backups
        target_dir = logs_dir or LOGS_DIR
        os.makedirs(target_dir, exist_ok=True)
        log_file = os.path.join(target_dir, "app.log")
        file_handler = RotatingFileHandler(log_file, maxBytes=5*1024*1024, backupCount=5, encoding='utf-8')
        file_formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)

    return logger
