"""
Structured logging using structlog.

Events are rendered as JSON lines (or colored console output during
development) through the standard library root logger. Request-scoped
fields are kept in contextvars and merged into every event emitted while
the request is being handled.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional

import structlog
from structlog.stdlib import LoggerFactory

# Credential-bearing keys that must never reach a log sink
REDACTED_KEYS = frozenset({
    "password",
    "password_hash",
    "access_token",
    "refresh_token",
    "authorization",
    "cookie",
})


def redact_secrets(logger, method_name: str, event_dict: dict) -> dict:
    """structlog processor masking credential values passed as event fields."""
    for key in REDACTED_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
    debug: bool = False
) -> None:
    """
    Configure structlog and the standard library root logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format (json or console)
        log_file: Optional file that receives a copy of every event
        debug: Add file, function and line of the call site to every event
    """
    level = getattr(logging, log_level.upper())

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        redact_secrets,
    ]

    if debug:
        processors.append(
            structlog.processors.CallsiteParameterAdder({
                structlog.processors.CallsiteParameter.FILENAME,
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            })
        )

    if log_format == "console":
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors.append(structlog.processors.JSONRenderer(ensure_ascii=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        # Repeated setup (run_api, then the app factory) keeps one handler per file
        for handler in list(root_logger.handlers):
            if isinstance(handler, logging.FileHandler) and handler.baseFilename == os.path.abspath(log_path):
                root_logger.removeHandler(handler)
                handler.close()

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(file_handler)

    get_logger(__name__).debug(
        "Logging system initialized",
        level=log_level,
        format=log_format,
        file=log_file,
        debug=debug,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def bind_request_context(**fields) -> None:
    """Start a fresh request context; ``fields`` are attached to every event until it is cleared."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**fields)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()


def log_request(logger, status_code: int, response_time_ms: float, **fields) -> None:
    """Emit the one-line request summary at a level matching the response status."""
    if status_code >= 500:
        emit, event = logger.error, "Request failed"
    elif status_code >= 400:
        emit, event = logger.warning, "Request rejected"
    else:
        emit, event = logger.info, "Request completed"
    emit(event, status_code=status_code, response_time_ms=response_time_ms, **fields)
