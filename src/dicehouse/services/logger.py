"""
Logging setup for the settlement engine

One LoggerService owns the root logger's handlers: a colorlog console
handler, size-rotated app.log and errors.log files, and an optional JSON
line format for machine consumption. Modules log through
logging.getLogger(__name__) and never configure handlers themselves.
"""

import json
import logging
import sys
import time
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import colorlog

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}

DEFAULT_SETTINGS: dict[str, Any] = {
    "log_dir": "./logs",
    "console_level": "INFO",
    "file_level": "DEBUG",
    "max_bytes": 5 * 1024 * 1024,
    "backup_count": 3,
    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    "date_format": "%Y-%m-%d %H:%M:%S",
    "colored_output": True,
    "json_logs": False,
    "file_output": True,
}

# Attributes every LogRecord carries; anything else came in through `extra`
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime"}


def _level(name: str | None) -> int:
    level = logging.getLevelName(str(name or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


class LoggerService:
    """Installs and tears down the root logger's handlers"""

    def __init__(self, settings: dict[str, Any] | None = None):
        self.settings = {**DEFAULT_SETTINGS, **(settings or {})}
        self.log_dir = self._prepare_log_dir(Path(self.settings["log_dir"]))
        self._handlers: list[logging.Handler] = []
        self._install()

    @staticmethod
    def _prepare_log_dir(path: Path) -> Path:
        try:
            path.mkdir(parents=True, exist_ok=True)
            return path
        except OSError:
            fallback = Path("./logs")
            fallback.mkdir(parents=True, exist_ok=True)
            return fallback

    def _install(self):
        root = logging.getLogger()
        root.setLevel(logging.DEBUG)
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()

        self._handlers.append(self._console_handler())
        if self.settings["file_output"]:
            self._handlers.append(self._file_handler("app.log", _level(self.settings["file_level"])))
            self._handlers.append(self._file_handler("errors.log", logging.ERROR))

        for handler in self._handlers:
            root.addHandler(handler)

    def _plain_formatter(self) -> logging.Formatter:
        return logging.Formatter(self.settings["format"], datefmt=self.settings["date_format"])

    def _console_handler(self) -> logging.Handler:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(_level(self.settings["console_level"]))
        if self.settings["colored_output"]:
            handler.setFormatter(
                colorlog.ColoredFormatter(
                    "%(log_color)s" + self.settings["format"],
                    datefmt=self.settings["date_format"],
                    log_colors=LOG_COLORS,
                )
            )
        else:
            handler.setFormatter(self._plain_formatter())
        return handler

    def _file_handler(self, filename: str, level: int) -> logging.Handler:
        try:
            handler: logging.Handler = RotatingFileHandler(
                self.log_dir / filename,
                maxBytes=self.settings["max_bytes"],
                backupCount=self.settings["backup_count"],
            )
        except OSError:
            # read-only filesystem: keep the records on stderr
            handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        handler.setFormatter(JsonFormatter() if self.settings["json_logs"] else self._plain_formatter())
        return handler

    def get_logger(self, name: str) -> logging.Logger:
        return logging.getLogger(name)

    def cleanup(self):
        """Detach and close the handlers this service installed"""
        root = logging.getLogger()
        for handler in self._handlers:
            root.removeHandler(handler)
            handler.close()
        self._handlers.clear()


class JsonFormatter(logging.Formatter):
    """One JSON object per record, `extra` fields included"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(
            (key, value) for key, value in record.__dict__.items() if key not in _STANDARD_ATTRS
        )
        return json.dumps(entry, default=str)


class PerformanceLogger:
    """
    Time a block and log the duration at DEBUG

    with PerformanceLogger(logger, "resolve_bet seed=7"):
        ...
    """

    def __init__(self, logger: logging.Logger, operation: str):
        self.logger = logger
        self.operation = operation
        self.duration: float | None = None
        self._started = 0.0

    def __enter__(self):
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = time.perf_counter() - self._started
        elapsed_ms = self.duration * 1000
        if exc_type is None:
            self.logger.debug(f"Operation '{self.operation}' completed in {elapsed_ms:.2f}ms")
        else:
            self.logger.debug(f"Operation '{self.operation}' failed after {elapsed_ms:.2f}ms: {exc_val}")
        return False


_service: LoggerService | None = None


def setup_logging(overrides: dict | None = None) -> logging.Logger:
    """
    Configure the root logger from config.LOGGING and config.FILES

    Only the first call installs handlers; later calls return the root logger
    unchanged.

    Args:
        overrides: Settings that take precedence over the config values
    """
    global _service

    if _service is None:
        from ..config import config

        settings = {
            "log_dir": str(config.FILES["log_dir"]),
            "console_level": config.get("logging", "level"),
            "max_bytes": config.get("logging", "max_bytes"),
            "backup_count": config.get("logging", "backup_count"),
            "format": config.get("logging", "format"),
            "date_format": config.get("logging", "date_format"),
        }
        settings.update(overrides or {})
        _service = LoggerService(settings)
        config.set_logger(logging.getLogger("dicehouse.config"))

    return logging.getLogger()


def get_logger(name: str) -> logging.Logger:
    """Named logger, configuring logging first if nobody has yet"""
    if _service is None:
        setup_logging()
    return _service.get_logger(name)


def cleanup_logging():
    """Remove the installed handlers so setup_logging() can run again"""
    global _service

    if _service is not None:
        _service.cleanup()
        _service = None
