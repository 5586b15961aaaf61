# ============================================================================
# src/symptom_trends/utils/logging.py
# ============================================================================
"""
Logging configuration and utilities for the symptom trend engine.
"""

import logging
import sys
import time
from pathlib import Path
from typing import List, Optional
from datetime import datetime, timezone
from functools import wraps
import json


PACKAGE_LOGGER = "symptom_trends"

_TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    format_json: bool = False,
    logger_name: str = PACKAGE_LOGGER,
) -> logging.Logger:
    """
    Attach output handlers to the engine's package logger.

    The root logger is left alone so a host application keeps its own
    configuration. Calling again replaces the handlers installed by the
    previous call.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Also write to this file, creating its directory
        format_json: One JSON object per line instead of plain text
        logger_name: Logger to configure

    Returns:
        The configured logger
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        raise ValueError(f"Unknown log level '{level}'")

    formatter = JsonFormatter() if format_json else logging.Formatter(_TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logger = logging.getLogger(logger_name)
    for handler in [h for h in logger.handlers if getattr(h, "_trend_engine_handler", False)]:
        logger.removeHandler(handler)
        handler.close()

    for handler in handlers:
        handler.setFormatter(formatter)
        handler._trend_engine_handler = True
        logger.addHandler(handler)

    logger.setLevel(log_level)
    return logger


def setup_logging_from_settings() -> logging.Logger:
    """Configure the package logger from LOG_LEVEL, LOG_JSON and LOG_FILE"""
    from ..config.logging_config import logging_settings

    return setup_logging(
        level=logging_settings.LOG_LEVEL,
        log_file=logging_settings.LOG_FILE,
        format_json=logging_settings.LOG_JSON,
    )


class JsonFormatter(logging.Formatter):
    """JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        # Context attached through LogAdapter
        for key in ('user_id', 'metric', 'time_range'):
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data)


def log_performance(logger: logging.Logger, operation: str):
    """
    Decorator to log operation performance.

    Args:
        logger: Logger instance
        operation: Operation name
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.perf_counter()

            try:
                result = func(*args, **kwargs)
                duration = time.perf_counter() - start_time
                logger.debug(f"{operation} completed in {duration:.3f}s")
                return result

            except Exception as e:
                duration = time.perf_counter() - start_time
                logger.error(f"{operation} failed after {duration:.3f}s: {str(e)}")
                raise

        return wrapper
    return decorator


class LogAdapter(logging.LoggerAdapter):
    """Logger adapter for adding analysis context to all log messages."""

    def process(self, msg, kwargs):
        """Add extra context to log message."""
        if 'extra' not in kwargs:
            kwargs['extra'] = {}

        kwargs['extra'].update(self.extra)

        return msg, kwargs
