"""Structured logging configuration for kinesim.

Logging goes through structlog, rendered either as colored console lines
(default) or as JSON (``KINESIM_LOG_FORMAT=json``). Compilation diagnostics
are emitted as snake_case events with keyword fields, e.g.::

    log = get_logger(__name__)
    log.warning("fake_controllers_compile_failed", joint="elbow", channel="position")

Hosts that embed the compiler call ``configure_logging()`` once at startup;
``bind_context()`` attaches fields (such as the configuration file being
compiled) to every event emitted afterwards.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog
from structlog.types import Processor

__all__ = [
    "get_logger",
    "configure_logging",
    "level_for_verbosity",
    "bind_context",
    "clear_context",
]

LOG_FORMAT_ENV_VAR = "KINESIM_LOG_FORMAT"
LOG_LEVEL_ENV_VAR = "KINESIM_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "WARNING"

_VERBOSITY_LEVELS = {
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def level_for_verbosity(verbosity: str) -> int:
    """Map a configuration verbosity name to a logging level.

    Unknown names fall back to WARNING.
    """
    return _VERBOSITY_LEVELS.get(verbosity.lower(), logging.WARNING)


def _level_from_env() -> int:
    level_name = os.environ.get(LOG_LEVEL_ENV_VAR, DEFAULT_LOG_LEVEL).upper()
    return getattr(logging, level_name, logging.WARNING)


def _json_requested() -> bool:
    return os.environ.get(LOG_FORMAT_ENV_VAR, "").lower() == "json"


def _shared_processors() -> list[Processor]:
    """Processors applied to both structlog and foreign stdlib records."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(use_json: bool) -> Processor:
    if use_json:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def configure_logging(
    *,
    force_json: bool = False,
    level: int | None = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    Safe to call more than once; each call replaces the previous handlers.

    Args:
        force_json: Render JSON regardless of ``KINESIM_LOG_FORMAT``.
        level: Explicit log level. When None, ``KINESIM_LOG_LEVEL`` is read
            (default WARNING).
    """
    use_json = force_json or _json_requested()
    log_level = level if level is not None else _level_from_env()

    structlog.configure(
        processors=[
            *_shared_processors(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(use_json),
            ],
            foreign_pre_chain=_shared_processors(),
        )
    )

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger, usually called as ``get_logger(__name__)``."""
    log: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return log


def bind_context(**context: Any) -> None:
    """Bind fields that are merged into every subsequent log event.

    Example:
        bind_context(controllers_file="fake_controllers.yaml")
    """
    structlog.contextvars.bind_contextvars(**context)


def clear_context() -> None:
    """Drop all fields bound with ``bind_context``."""
    structlog.contextvars.clear_contextvars()
