"""Structured logging configuration for ms365.

Uses structlog on top of the standard library logging module. Every Graph
request made on behalf of one high-level call (e.g. one CLI command) can be
traced together through an operation ID kept in a context variable.
Credentials never reach the log output: token-bearing fields are masked
before rendering.

Usage:
    from ms365.core.logging import get_logger, operation

    logger = get_logger(__name__)

    with operation():
        logger.info("site_resolved", site_id="contoso.sharepoint.com,abc,def")
"""

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

import structlog

_operation_id: ContextVar[str | None] = ContextVar("operation_id", default=None)

# Event fields whose values are credentials
SENSITIVE_FIELDS = frozenset(
    {"access_token", "refresh_token", "id_token", "authorization", "client_secret", "token"}
)
REDACTED = "***"


@contextmanager
def operation(operation_id: str | None = None) -> Iterator[str]:
    """Tag every log entry made inside the block with one operation ID.

    Args:
        operation_id: ID to use; a new UUID when omitted

    Yields:
        The operation ID in effect
    """
    operation_id = operation_id or str(uuid.uuid4())
    token = _operation_id.set(operation_id)
    try:
        yield operation_id
    finally:
        _operation_id.reset(token)


def add_operation_id(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Structlog processor to add the operation ID to log entries."""
    operation_id = _operation_id.get()
    if operation_id is not None:
        event_dict["operation_id"] = operation_id
    return event_dict


def redact_credentials(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Structlog processor masking token values, including inside header dicts."""
    for key, value in event_dict.items():
        if key.lower() in SENSITIVE_FIELDS:
            event_dict[key] = REDACTED
        elif isinstance(value, dict):
            event_dict[key] = {
                k: REDACTED if str(k).lower() in SENSITIVE_FIELDS else v for k, v in value.items()
            }
    return event_dict


def configure_logging(log_level: str = "WARNING", json_output: bool = False) -> None:
    """Configure structlog for the library and CLI.

    A library should stay quiet by default, so the default level is WARNING
    with human-readable output on stderr. The CLI raises it with --debug.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_output: If True, output JSON; if False, output human-readable format
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper()),
    )

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        add_operation_id,
        redact_credentials,
    ]

    if json_output:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Example:
        logger = get_logger(__name__)
        logger.debug("drive_listed", drive_id="b!abc", items=12)
    """
    return structlog.get_logger(name)
