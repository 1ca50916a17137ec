"""
Structured logging configuration using structlog.

Usage:
    from apps.core.logging import get_logger

    logger = get_logger(__name__)
    logger.info("signup_created", signup_id="...", hub=2)

Conventions:
    - Event names are snake_case and prefixed by the component
      (signup_*, provisioning_*, checkout_*, stripe_webhook_*).
    - trace_id: request correlation ID bound by RequestContextMiddleware.
    - phone: only ever the last four digits. Any ``phone`` or ``phone_number``
      key is masked before rendering.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

_PHONE_KEYS = ("phone", "phone_number", "destination")


def _rename_request_id(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Expose request_id under trace_id so log search uses one field name."""
    if "request_id" in event_dict:
        event_dict["trace_id"] = str(event_dict.pop("request_id"))
    return event_dict


def _mask_phone_numbers(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Keep only the last four characters of phone-like values."""
    for key in _PHONE_KEYS:
        value = event_dict.get(key)
        if isinstance(value, str) and value.startswith("+") and len(value) > 4:
            event_dict[key] = f"***{value[-4:]}"
    return event_dict


def configure_logging(json_format: bool = True, log_level: str = "INFO") -> None:
    """
    Configure structlog for the application.

    Uses stdlib integration so Django and third-party library logs go through
    the same renderer.

    Args:
        json_format: If True, output JSON (production). If False, pretty console output.
        log_level: Minimum log level to output.
    """
    log_level_int = getattr(logging, log_level.upper(), logging.INFO)

    pre_chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _rename_request_id,
        _mask_phone_numbers,
    ]

    if json_format:
        renderer: Processor = structlog.processors.JSONRenderer()
        pre_chain.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *pre_chain,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level_int)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name, typically __name__ of the calling module.
    """
    return structlog.get_logger(name)


def bind_contextvars(**kwargs: Any) -> None:
    """Bind key-value pairs to every log line of the current request."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_contextvars() -> None:
    """
    Clear all bound context variables.

    Call at the end of request processing so context does not leak between
    requests handled by the same worker.
    """
    structlog.contextvars.clear_contextvars()
