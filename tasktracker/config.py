import os
import logging
import sys

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    "sqlite:///./tasks.db"
)

HOST = os.getenv("HOST", "0.0.0.0")

PORT = int(
    os.getenv("PORT", 4000)
)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that are too chatty at the service's level
QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
}


def setup_logging(level: str = LOG_LEVEL) -> logging.Logger:
    """
    Send every log record to stdout and return the package logger.

    Safe to call more than once: basicConfig is a no-op after the first call.
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    return logging.getLogger("tasktracker")
