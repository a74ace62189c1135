"""structlog setup for the metamode CLI.

Scan, compile and write steps log through the stdlib loggers of their
modules; this routes them to stderr tagged with the running subcommand.
"""

import logging
import os
import sys

import structlog


def configure_logging(level: str, json_output: bool | None = None) -> None:
    """Install one stderr handler on the root logger.

    Args:
        level: Level name from LOG_LEVEL; unknown names fall back to INFO.
        json_output: Render JSON lines. If None, JSON only when APP_ENV=prod.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if json_output is None:
        json_output = os.environ.get("APP_ENV", "dev") == "prod"

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_output:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

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
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    # Diagnostics go to stderr so command output on stdout stays pipeable.
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(log_level)


def bind_context(**kwargs: object) -> None:
    """Attach fields such as the subcommand name to every later log line."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all structlog context variables."""
    structlog.contextvars.clear_contextvars()
