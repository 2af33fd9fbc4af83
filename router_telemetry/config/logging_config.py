import logging
import sys
from logging.config import dictConfig
from pathlib import Path
from typing import Optional

from router_telemetry.config.settings import Settings, settings as default_settings


def configure_logging(settings: Optional[Settings] = None, log_dir: str = "logs"):
    settings = settings or default_settings
    log_path = Path(log_dir)
    log_path.mkdir(exist_ok=True)

    log_level = settings.LOG_LEVEL.upper()

    log_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "level": "DEBUG" if settings.DEBUG else log_level,
                "formatter": "standard",
                "class": "logging.StreamHandler",
                "stream": sys.stdout,
            },
            "file": {
                "level": log_level,
                "formatter": "detailed",
                "class": "logging.handlers.RotatingFileHandler",
                "filename": log_path / "app.log",
                "maxBytes": 10485760,
                "backupCount": 5,
                "encoding": "utf8",
            },
            "error_file": {
                "level": "ERROR",
                "formatter": "detailed",
                "class": "logging.handlers.RotatingFileHandler",
                "filename": log_path / "error.log",
                "maxBytes": 10485760,
                "backupCount": 5,
                "encoding": "utf8",
            },
        },
        "loggers": {
            "router_telemetry": {
                "handlers": ["console", "file", "error_file"],
                "level": "DEBUG" if settings.DEBUG else log_level,
                "propagate": False,
            },
            # asyncssh logs every channel open at INFO
            "asyncssh": {
                "handlers": ["console", "file"],
                "level": "WARNING",
                "propagate": False,
            },
            "sqlalchemy.engine": {
                "handlers": ["file"],
                "level": "INFO" if settings.DEBUG and settings.STORAGE_BACKEND == "sql" else "WARNING",
                "propagate": False,
            },
        },
        "root": {
            "handlers": ["console", "file", "error_file"],
            "level": "WARNING",
        },
    }

    dictConfig(log_config)
    logging.getLogger("router_telemetry").info(f"Logging configured with level: {log_level}")
