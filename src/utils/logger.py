"""
Logging configuration using Logfire, with stdlib logging when no token is configured.

Both backends accept keyword attributes so call sites can attach structured
context without caring which one is active:

    logger.info("Recovered document", level=2, slides=7)
"""
import logging
import os
from typing import Any, Dict, Optional

from src.utils import logfire_config


class LogfireLogger:
    """Adapter giving Logfire the familiar logging.Logger call surface."""

    def __init__(self, name: str):
        self.name = name

    def _emit(self, method: str, message: str, args: tuple, kwargs: Dict[str, Any]) -> None:
        import logfire

        if args:
            message = message % args
        kwargs.pop('exc_info', None)
        getattr(logfire, method)(f"[{self.name}] {message}", **kwargs)

    def debug(self, message, *args, **kwargs):
        self._emit('debug', message, args, kwargs)

    def info(self, message, *args, **kwargs):
        self._emit('info', message, args, kwargs)

    def warning(self, message, *args, **kwargs):
        self._emit('warn', message, args, kwargs)

    warn = warning

    def error(self, message, *args, **kwargs):
        self._emit('error', message, args, kwargs)

    def exception(self, message, *args, **kwargs):
        self._emit('error', f"EXCEPTION: {message}", args, kwargs)

    def critical(self, message, *args, **kwargs):
        self._emit('error', f"CRITICAL: {message}", args, kwargs)

    def setLevel(self, level):
        # Logfire filtering happens server side
        pass


class StandardLogger:
    """stdlib logger; keyword attributes are folded into the record's `extra`."""

    def __init__(self, name: str, level: Optional[str] = None):
        self.logger = logging.getLogger(name)

        level_name = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()
        log_level = getattr(logging, level_name, logging.INFO)
        self.logger.setLevel(log_level)

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setLevel(log_level)
            handler.setFormatter(logging.Formatter('[%(levelname)s %(name)s] %(message)s'))
            self.logger.addHandler(handler)

    def _log(self, level: int, message, args: tuple, kwargs: Dict[str, Any]) -> None:
        exc_info = kwargs.pop('exc_info', False)
        extra = {f"attr_{key}": value for key, value in kwargs.items()}
        self.logger.log(level, message, *args, exc_info=exc_info, extra=extra or None)

    def debug(self, message, *args, **kwargs):
        self._log(logging.DEBUG, message, args, kwargs)

    def info(self, message, *args, **kwargs):
        self._log(logging.INFO, message, args, kwargs)

    def warning(self, message, *args, **kwargs):
        self._log(logging.WARNING, message, args, kwargs)

    warn = warning

    def error(self, message, *args, **kwargs):
        self._log(logging.ERROR, message, args, kwargs)

    def exception(self, message, *args, **kwargs):
        kwargs.setdefault('exc_info', True)
        self._log(logging.ERROR, message, args, kwargs)

    def critical(self, message, *args, **kwargs):
        self._log(logging.CRITICAL, message, args, kwargs)

    def setLevel(self, level):
        self.logger.setLevel(level)


class ServiceLogger:
    """
    Picks the backend on every call.

    Module-level loggers are created at import time, usually before
    configure_logfire() has run in main.py.
    """

    def __init__(self, name: str, level: Optional[str] = None):
        self.name = name
        self._standard = StandardLogger(name, level)
        self._logfire = LogfireLogger(name)

    @property
    def backend(self):
        return self._logfire if logfire_config.is_configured() else self._standard

    def debug(self, message, *args, **kwargs):
        self.backend.debug(message, *args, **kwargs)

    def info(self, message, *args, **kwargs):
        self.backend.info(message, *args, **kwargs)

    def warning(self, message, *args, **kwargs):
        self.backend.warning(message, *args, **kwargs)

    warn = warning

    def error(self, message, *args, **kwargs):
        self.backend.error(message, *args, **kwargs)

    def exception(self, message, *args, **kwargs):
        self.backend.exception(message, *args, **kwargs)

    def critical(self, message, *args, **kwargs):
        self.backend.critical(message, *args, **kwargs)

    def setLevel(self, level):
        self._standard.setLevel(level)


def setup_logger(name: str, level: Optional[str] = None) -> ServiceLogger:
    """
    Set up a logger using Logfire, or standard Python logging if not configured.

    Args:
        name: Logger name (usually __name__)
        level: Logging level (used for standard logger)

    Returns:
        ServiceLogger that routes to Logfire once it is configured
    """
    return ServiceLogger(name, level)
