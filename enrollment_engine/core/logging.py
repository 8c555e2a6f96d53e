import logging
import sys

from enrollment_engine.core.config import config

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def setup_logging() -> logging.Logger:
    """
    Configure application logging.

    Default log level is INFO. SQL logs only show when LOG_LEVEL=DEBUG.
    """
    log_level = LOG_LEVELS.get(config.LOG_LEVEL.upper(), logging.INFO)

    formatter = logging.Formatter(
        fmt="%(asctime)s │ %(levelname)-8s │ %(name)s:%(lineno)d │ %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear existing handlers to avoid duplicates
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)

    # Third-party loggers - reduce noise
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("celery").setLevel(logging.WARNING)

    # SQLAlchemy - only show SQL text at DEBUG level to avoid leaking PII in logs
    sqlalchemy_logger = logging.getLogger("sqlalchemy.engine")
    if log_level <= logging.DEBUG:
        sqlalchemy_logger.setLevel(logging.DEBUG)
        root_logger.info("SQL logging enabled (DEBUG mode)")
    else:
        sqlalchemy_logger.setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the specified name."""
    return logging.getLogger(name)
