"""
Invoice Bridge Structured Logging

Provides consistent logging with:
- Run ID tracking (one ID per API request or generation run)
- JSON structured output (optional)
- Level-based filtering
- Performance timing

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from functools import wraps
from typing import Optional
from uuid import uuid4

# Context variable for run tracking
run_id_var: ContextVar[str] = ContextVar("run_id", default="")

_EXTRA_KEYS = (
    "duration_ms", "endpoint", "status_code", "method", "path",
    "dry_run", "returncode", "generator_root", "file_count",
)


class StructuredFormatter(logging.Formatter):
    """
    Formatter that outputs structured log entries.

    In JSON mode, outputs machine-readable JSON.
    In text mode, outputs human-readable logs with context.
    """

    def __init__(self, json_output: bool = False):
        super().__init__()
        self.json_output = json_output

    def format(self, record: logging.LogRecord) -> str:
        run_id = run_id_var.get()

        log_data = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if run_id:
            log_data["run_id"] = run_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key in _EXTRA_KEYS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        if self.json_output:
            return json.dumps(log_data, default=str)

        parts = [
            f"[{log_data['timestamp']}]",
            f"[{record.levelname:8}]",
        ]
        if run_id:
            parts.append(f"[{run_id[:8]}]")
        parts.append(record.getMessage())

        extras = []
        for key in ("duration_ms", "endpoint", "status_code", "returncode"):
            if hasattr(record, key):
                extras.append(f"{key}={getattr(record, key)}")
        if extras:
            parts.append(f"({', '.join(extras)})")

        result = " ".join(parts)
        if record.exc_info:
            result += "\n" + self.formatException(record.exc_info)
        return result


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON logs
        log_file: Optional file path for log output

    Returns:
        Root logger
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(StructuredFormatter(json_output=json_output))
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(StructuredFormatter(json_output=True))  # Always JSON to file
        root_logger.addHandler(file_handler)

    # Reduce noise from libraries
    logging.getLogger("werkzeug").setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a named logger."""
    return logging.getLogger(name)


def get_run_id() -> str:
    """Get current run ID."""
    return run_id_var.get()


@contextmanager
def run_context(run_id: Optional[str] = None):
    """
    Bind a run ID for the duration of a block, restoring the previous one
    afterwards. With no explicit ID, an ID already bound by an enclosing
    request is kept; otherwise a fresh one is generated.

    Usage:
        with run_context() as run_id:
            ...
    """
    if run_id is None and run_id_var.get():
        yield run_id_var.get()
        return

    token = run_id_var.set(run_id or str(uuid4()))
    try:
        yield run_id_var.get()
    finally:
        run_id_var.reset(token)


def log_request(logger: logging.Logger):
    """
    Decorator to log API request start/end with timing.

    The run ID comes from the X-Request-ID header (or is generated) and is
    unbound again once the request returns.

    Usage:
        @app.route("/api/settings")
        @log_request(logger)
        def get_settings():
            ...
    """
    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            from flask import request

            with run_context(request.headers.get("X-Request-ID") or str(uuid4())):
                start_time = time.time()

                logger.debug(
                    f"Request started: {request.method} {request.path}",
                    extra={"method": request.method, "path": request.path, "endpoint": f.__name__},
                )

                try:
                    result = f(*args, **kwargs)
                except Exception:
                    duration_ms = (time.time() - start_time) * 1000
                    logger.warning(
                        f"Request failed: {request.method} {request.path}",
                        extra={
                            "method": request.method,
                            "path": request.path,
                            "endpoint": f.__name__,
                            "duration_ms": round(duration_ms, 2),
                        },
                    )
                    raise

                if isinstance(result, tuple):
                    status_code = result[1] if len(result) > 1 else 200
                else:
                    status_code = 200

                duration_ms = (time.time() - start_time) * 1000
                logger.info(
                    f"Request completed: {request.method} {request.path}",
                    extra={
                        "method": request.method,
                        "path": request.path,
                        "endpoint": f.__name__,
                        "status_code": status_code,
                        "duration_ms": round(duration_ms, 2),
                    },
                )
                return result

        return wrapper
    return decorator


class Timer:
    """
    Context manager for timing code blocks.

    Usage:
        with Timer(logger, "generator run"):
            subprocess.run(...)
    """

    def __init__(self, logger: logging.Logger, operation: str, level: int = logging.DEBUG):
        self.logger = logger
        self.operation = operation
        self.level = level
        self.start_time = None
        self.duration_ms = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_ms = (time.time() - self.start_time) * 1000

        if exc_type:
            self.logger.log(
                logging.ERROR,
                f"Operation failed: {self.operation}",
                extra={"duration_ms": round(self.duration_ms, 2)}
            )
        else:
            self.logger.log(
                self.level,
                f"Operation completed: {self.operation}",
                extra={"duration_ms": round(self.duration_ms, 2)}
            )

        return False  # Don't suppress exceptions


__all__ = [
    "setup_logging",
    "get_logger",
    "get_run_id",
    "run_context",
    "log_request",
    "Timer",
    "StructuredFormatter",
]
