"""Structured logging for ghsync commands and drain loops."""

import logging
import sys
from collections.abc import MutableMapping
from typing import Any, TextIO

import structlog

from src.fetch.redact import REDACTED_VALUE, is_sensitive_header


SERVICE_NAME = "ghsync"

# Event keys whose values are credentials
SECRET_KEYS = frozenset({"token", "github_token", "access_token"})

# Libraries that log every request; the GitHub client logs its own
NOISY_LOGGERS = ("httpx", "httpcore")


def _add_service(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _redact_secrets(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    for key in event_dict:
        if key.lower() in SECRET_KEYS or is_sensitive_header(key):
            event_dict[key] = REDACTED_VALUE
    return event_dict


def configure_logging(
    level: int = logging.INFO,
    output: TextIO = sys.stderr,
    json_format: bool = True,
) -> None:
    """Configure structlog for the sync engine.

    Every line carries ``service``, the level, a UTC timestamp and any
    user bound with ``bind_user_context``. Credential-bearing keys are
    redacted. JSON lines render exceptions as structured tracebacks for
    the drain logs; console output is colored only on a terminal.

    Args:
        level: Minimum level to emit.
        output: Stream to write to.
        json_format: JSON lines when True, human-readable console otherwise.
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _add_service,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _redact_secrets,
    ]

    if json_format:
        processors += [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(sort_keys=True),
        ]
    else:
        is_tty = getattr(output, "isatty", lambda: False)()
        processors.append(structlog.dev.ConsoleRenderer(colors=is_tty))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=output),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=output, level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def bind_user_context(user_id: str) -> None:
    """Bind the acting user to all subsequent log messages.

    Args:
        user_id: Identifier of the user whose data is being synced.
    """
    structlog.contextvars.bind_contextvars(user_id=user_id)


def clear_user_context() -> None:
    """Clear user context from log messages."""
    structlog.contextvars.unbind_contextvars("user_id")
