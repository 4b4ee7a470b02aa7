"""
Structured logging configuration using structlog.

JSON lines in production, colored console output when running at DEBUG.
Every record passes through a redaction processor so private-key shaped
values pasted into the chat never reach the log sink.
"""

import logging
import re
import sys
from typing import Any, Optional

import structlog

from .config import settings

_KEY_LIKE_RE = re.compile(r"(0x)?[0-9a-fA-F]{64}")


def _mask(value: Any) -> Any:
    if isinstance(value, str):
        return _KEY_LIKE_RE.sub("[redacted]", value)
    if isinstance(value, dict):
        return {k: _mask(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(_mask(v) for v in value)
    return value


def redact_secrets(
    logger: Any, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """Mask 32-byte hex values (private keys) anywhere in the event."""
    return {key: _mask(value) for key, value in event_dict.items()}


def bind_turn_context(user_id: str, current_action: Optional[str]) -> None:
    """Attach the session identity to every log line of the current turn."""
    structlog.contextvars.bind_contextvars(
        user_id=user_id,
        current_action=current_action or "idle",
    )


def setup_logging(log_level: Optional[str] = None) -> None:
    """Configure structlog over stdlib logging.

    Args:
        log_level: Override log level (default: from settings.log_level)
    """
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    is_dev = level == logging.DEBUG

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if is_dev:
        renderer: structlog.types.Processor = structlog.dev.ConsoleRenderer()
    else:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in ("uvicorn.access", "httpcore", "httpx"):
        logging.getLogger(name).setLevel(logging.WARNING)
