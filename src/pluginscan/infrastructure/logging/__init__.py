"""Structured logging configuration -- structlog + stdlib integration.

Provides a single :func:`setup_logging` entry-point that configures
**structlog** and Python's built-in :mod:`logging` so that every log
statement (including ``httpx``, which logs through ``logging.getLogger``)
flows through a unified processor pipeline and renderer.

Log output always goes to **stderr**; report output on stdout stays clean
for ``--format=json`` / ``--format=csv`` consumers.

Processors added to every log event:

* **timestamp** -- UTC ISO-8601
* **log level** -- ``debug`` / ``info`` / ``warning`` / ``error``
* **logger name** -- the ``__name__`` of the calling module
* **invocation_id** / **command** -- bound per CLI command through
  :func:`bind_invocation`
"""
from __future__ import annotations

import logging
import sys
import uuid
from typing import Any

import structlog


def setup_logging(
    level: str = "info",
    json_output: bool = False,
    log_file: str | None = None,
) -> None:
    """Configure structlog with stdlib logging integration.

    Args:
        level: Log level string (``debug``, ``info``, ``warning``, ``error``,
            ``critical``).
        json_output: If ``True``, output JSON lines; otherwise
            human-readable coloured output.
        log_file: Optional file path for log output **in addition** to
            stderr.  File output is always JSON regardless of
            ``json_output``.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=sys.stderr.isatty(),
            pad_event=30,
        )

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)

    handlers: list[logging.Handler] = [console_handler]

    # File output is always JSON for machine ingestion
    if log_file:
        file_formatter = structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.JSONRenderer(),
            ],
            foreign_pre_chain=shared_processors,
        )
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(file_formatter)
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level)
    for handler in handlers:
        root_logger.addHandler(handler)

    # One line per request from httpx is noise at INFO
    for noisy in ("httpx", "httpcore", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    structlog.get_logger(__name__).debug(
        "logging_configured",
        level=level,
        json_output=json_output,
        log_file=log_file or "none",
    )


def get_logger(name: str | None = None) -> Any:
    """Return a structlog bound logger.

    Thin convenience wrapper so that callers do not need to import
    structlog directly::

        from pluginscan.infrastructure.logging import get_logger
        logger = get_logger(__name__)
    """
    return structlog.get_logger(name)


def bind_invocation(command: str) -> str:
    """Bind a fresh invocation id and the command name into the log context.

    Returns the generated invocation id.
    """
    invocation_id = uuid.uuid4().hex[:12]
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(invocation_id=invocation_id, command=command)
    return invocation_id


__all__ = ["setup_logging", "get_logger", "bind_invocation"]
