"""structlog configuration for the simulator."""

from __future__ import annotations

import logging

import structlog


def setup_logging(*, json: bool = False, level: str = "INFO") -> None:
    """Configure structlog for console or JSON output.

    Args:
        json: Render one JSON object per event instead of console lines.
        level: Minimum level name ("DEBUG", "INFO", "WARNING", ...).

    Raises:
        ValueError: If ``level`` is not a known level name.
    """
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level '{level}'")

    renderer = (
        structlog.processors.JSONRenderer()
        if json
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
