import logging
import logging.config
import os

from mockinterview.core.config import settings

FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] [%(filename)s:%(lineno)d] %(message)s"


def build_logging_config(level: str, log_dir: str | None = None) -> dict:
    handlers = {
        "console": {
            "level": level,
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    }
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        handlers["file"] = {
            "level": "DEBUG",
            "class": "logging.handlers.TimedRotatingFileHandler",
            "filename": os.path.join(log_dir, "mockinterview.log"),
            "when": "midnight",
            "interval": 1,
            "backupCount": 14,
            "encoding": "utf-8",
            "formatter": "standard",
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {"format": FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"},
        },
        "handlers": handlers,
        "loggers": {
            "mockinterview": {"handlers": list(handlers), "level": level, "propagate": False},
        },
    }


def setup_logging(level: str | None = None, log_dir: str | None = None) -> None:
    """Apply the service logging configuration."""
    logging.config.dictConfig(
        build_logging_config(level or settings.log_level, log_dir or settings.log_dir)
    )
