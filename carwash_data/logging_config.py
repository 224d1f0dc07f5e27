"""
Logging configuration module for the data-access layer.

Configures structlog on top of the standard library logging so repository and
transport events are emitted as structured key/value records. Provides request ID
tracking for correlating retries and fallbacks of one logical call.
"""

import logging
import sys
from contextvars import ContextVar
from typing import Optional
from uuid import uuid4

import structlog

# Context variable for request ID tracking across async calls
request_id_context: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def _add_request_id(logger, method_name, event_dict):
    request_id = request_id_context.get()
    if request_id:
        event_dict.setdefault("request_id", request_id)
    return event_dict


def setup_logging(log_level: str = "INFO", use_json: bool = False) -> None:
    """
    Configure structured logging.

    Supports both JSON structured logging for production and console
    rendering for development.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        use_json: Use JSON rendering instead of the console renderer
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    renderer = (
        structlog.processors.JSONRenderer()
        if use_json
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            _add_request_id,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None):
    """
    Get a structlog logger for a specific module.

    Args:
        name: Name for the logger (typically __name__ of the module)
    """
    return structlog.get_logger(name or "carwash_data")


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set request ID in context for tracing.

    Args:
        request_id: Request ID to set, generates new UUID if None

    Returns:
        The request ID that was set
    """
    if request_id is None:
        request_id = str(uuid4())
    request_id_context.set(request_id)
    return request_id


def get_request_id() -> Optional[str]:
    """Get current request ID from context."""
    return request_id_context.get()


def clear_request_id() -> None:
    """Clear request ID from context."""
    request_id_context.set(None)
