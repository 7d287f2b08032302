"""Centralized logging configuration for calendar_gaps."""

import logging
import os

LOG_FORMAT = "%(asctime)s - %(filename)s:%(lineno)d - %(levelname)s - %(message)s"

PACKAGE_LOGGER = "calendar_gaps"

# Third-party loggers to suppress (only show warnings)
NOISY_LOGGERS = [
    "urllib3",
    "requests",
    "httpx",
    "httpcore",
    "starlette",
    "fastapi",
    "uvicorn.access",
]


def setup_logging(level: str = None, log_file: str = None) -> logging.Logger:
    """
    Configure the package logger once.

    Args:
        level: Level name; defaults to the LOG_LEVEL env var, then INFO
        log_file: Optional file to write to in addition to the console
            (defaults to the CALENDAR_GAPS_LOG_FILE env var)

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)

    # Skip if already configured
    if logger.handlers:
        return logger

    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    numeric_level = getattr(logging, level_name, logging.INFO)
    logger.setLevel(numeric_level)

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    log_file = log_file or os.getenv("CALENDAR_GAPS_LOG_FILE")
    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # Prevent propagation to avoid duplicates
    logger.propagate = False

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info(f"Logging configured - Level: {level_name}")
    return logger
