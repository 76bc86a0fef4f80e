"""
Logging configuration for the bot service.
"""

import logging
import sys

# Libraries that log full request URLs; Telegram URLs embed the bot token
NOISY_LOGGERS = ("httpx", "httpcore", "telegram.ext")


def setup_logging(name: str = "telegram_bot", level: int = logging.DEBUG):
    """Setup logging with proper format and handlers."""

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    formatter = logging.Formatter(
        '[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    handler.setFormatter(formatter)

    logger.addHandler(handler)

    # Prevent propagation to root logger
    logger.propagate = False

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger

# Global logger instance
bot_logger = setup_logging()
