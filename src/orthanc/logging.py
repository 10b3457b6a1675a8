"""Structured logging for the Orthanc client.

Library modules log through the standard ``logging`` module so they stay
quiet until an application opts in. ``configure_logging`` installs one root
handler whose ``ProcessorFormatter`` renders both those records and
structlog's own events: JSON lines in production, a console layout while
developing.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from structlog.typing import Processor

    from orthanc.config import Settings

_configured = False

_HANDLER_NAME = "orthanc"

# Loggers of the transport stack, kept quieter than the client itself
_NOISY_LOGGERS = ("httpx", "httpcore")


def _shared_processors() -> list[Processor]:
    """Processors applied to structlog events and stdlib records alike."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.ExtraAdder(),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]


def _render_processors(format: str) -> list[Processor]:
    if format.lower() == "json":
        return [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [
        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
        structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()),
    ]


def configure_logging(level: str = "INFO", format: str = "json") -> None:
    """Route client logs through structlog.

    Safe to call repeatedly; the previously installed handler is replaced.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        format: "json" for machine-readable lines, "text" for the console.

    Example:
        ```python
        from orthanc.logging import bind_context, configure_logging

        configure_logging(level="DEBUG", format="text")
        bind_context(user_id="user_123")
        ```
    """
    global _configured

    log_level = getattr(logging, level.upper(), logging.INFO)
    shared = _shared_processors()

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=_render_processors(format),
        )
    )

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(log_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _configured = True


def configure_from_settings(settings: Settings) -> None:
    configure_logging(level=settings.log_level, format=settings.log_format)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger, applying default configuration on first use."""
    if not _configured:
        configure_logging()

    return structlog.get_logger(name or "orthanc")  # type: ignore[no-any-return]


def bind_context(**kwargs: object) -> None:
    """Attach values such as user_id or request_id to every later log line.

    Bindings live in contextvars, so concurrent asyncio tasks do not see
    each other's values.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)
