import logging
import sys
from logging.handlers import RotatingFileHandler
import os

LOG_DIR = os.getenv("KALSHI_LOG_DIR", "logs")


def setup_logger(name="kalshi_trader", log_file="bot.log", level=logging.INFO):
    """
    Sets up a configured logger with file and console handlers.

    Module loggers (``logging.getLogger(__name__)`` inside the package)
    propagate to this one, so every runner shares the same rotating file.
    """
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - [%(levelname)s] - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid duplicate handlers if already setup
    if logger.hasHandlers():
        return logger

    os.makedirs(LOG_DIR, exist_ok=True)

    # Rotating File Handler (10MB per file, max 5 backups)
    file_handler = RotatingFileHandler(
        os.path.join(LOG_DIR, log_file),
        maxBytes=10*1024*1024,
        backupCount=5
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


def get_logger(component: str) -> logging.Logger:
    """Return a child of the bot logger, e.g. ``kalshi_trader.main``."""
    return logging.getLogger(f"kalshi_trader.{component}")


# Default logger instance
logger = setup_logger()
