"""
Logging setup for the API and the background workers.

Production writes JSON records; other environments get readable text. The
application, the email dispatcher and the retention jobs each get their own
logger so job runs can be filtered out of request noise. Rotating files are
optional (``LOG_TO_FILE``) so tests and containers can log to stdout only.
"""

import logging
import logging.config
import sys
import time
from pathlib import Path
from typing import Any, Dict

from app.core.config import settings

APP_LOGGERS = ("app", "app.api", "app.db", "app.services", "app.jobs")

TEXT_FORMAT = "[{asctime}] {levelname:8} {name:28} | {message}"
DEBUG_FORMAT = "[{asctime}] {levelname:8} {name:28} {funcName}:{lineno} | {message}"
JSON_FORMAT = "%(asctime)s %(name)s %(levelname)s %(funcName)s %(lineno)d %(message)s"


def _formatters() -> Dict[str, Any]:
    formatters: Dict[str, Any] = {
        "text": {"format": TEXT_FORMAT, "style": "{", "datefmt": "%Y-%m-%d %H:%M:%S"},
        "debug": {"format": DEBUG_FORMAT, "style": "{", "datefmt": "%Y-%m-%d %H:%M:%S"},
    }
    if settings.is_production:
        formatters["json"] = {
            "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
            "format": JSON_FORMAT,
        }
    return formatters


def _rotating(filename: Path, level: str, formatter: str, backups: int) -> Dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "formatter": formatter,
        "filename": str(filename),
        "maxBytes": 10 * 1024 * 1024,  # 10MB
        "backupCount": backups,
        "encoding": "utf8",
    }


def setup_logging() -> None:
    """
    Configure logging for the application.

    - console handler on stdout (JSON in production, text elsewhere)
    - ``app.log``, ``errors.log`` and ``jobs.log`` rotating files when enabled
    - APScheduler and SQLAlchemy quieted in production
    """
    formatter = "json" if settings.is_production else ("debug" if settings.debug else "text")

    handlers: Dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": "INFO" if settings.is_production else "DEBUG",
            "formatter": formatter,
            "stream": sys.stdout,
        },
    }
    app_handlers = ["console"]
    job_handlers = ["console"]

    log_dir = Path(settings.log_dir)
    if settings.log_to_file:
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers["file"] = _rotating(log_dir / "app.log", "INFO", formatter, 5)
        handlers["error_file"] = _rotating(log_dir / "errors.log", "ERROR", formatter, 10)
        handlers["job_file"] = _rotating(log_dir / "jobs.log", "INFO", formatter, 5)
        app_handlers += ["file", "error_file"]
        job_handlers += ["job_file", "error_file"]

    app_level = "DEBUG" if settings.debug else "INFO"
    loggers: Dict[str, Any] = {
        name: {"level": app_level, "handlers": app_handlers, "propagate": False}
        for name in APP_LOGGERS
    }
    loggers["app.jobs"]["handlers"] = job_handlers
    loggers["apscheduler"] = {
        "level": "WARNING" if settings.is_production else "INFO",
        "handlers": job_handlers,
        "propagate": False,
    }
    loggers["sqlalchemy.engine"] = {
        "level": "INFO" if settings.debug else "WARNING",
        "handlers": app_handlers,
        "propagate": False,
    }
    loggers["uvicorn.access"] = {
        "level": "INFO",
        "handlers": app_handlers,
        "propagate": False,
    }

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": _formatters(),
            "handlers": handlers,
            "loggers": loggers,
            "root": {"level": "WARNING", "handlers": ["console"]},
        }
    )

    logger = logging.getLogger("app")
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}, debug: {settings.debug}")
    if settings.log_to_file:
        logger.info(f"Log directory: {log_dir.absolute()}")


class LogExecutionTime:
    """Context manager that logs how long a block (e.g. a job run) took."""

    def __init__(self, logger: logging.Logger, operation: str, level: int = logging.INFO):
        self.logger = logger
        self.operation = operation
        self.level = level
        self.started = 0.0

    def __enter__(self):
        self.started = time.perf_counter()
        self.logger.log(self.level, f"Starting {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = time.perf_counter() - self.started
        if exc_type:
            self.logger.error(f"{self.operation} failed after {duration:.3f}s: {exc_val}")
        else:
            self.logger.log(self.level, f"{self.operation} finished in {duration:.3f}s")
