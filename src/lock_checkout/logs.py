"""
Logging setup for the checkout engine.

Modules log through ``structlog.get_logger(__name__)`` with key/value
events; the hosting application calls :func:`configure_logging` once.
"""

import logging

import structlog


def configure_logging(level: str = "INFO", fmt: str = "console") -> None:
    """
    Configure structlog processors.

    Args:
        level: Minimum level name (``DEBUG``, ``INFO``, ...).
        fmt: ``console`` for human-readable output, ``json`` for one JSON
            object per line.

    Raises:
        ValueError: If ``level`` or ``fmt`` is unknown.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    if fmt == "console":
        renderer = structlog.dev.ConsoleRenderer()
    elif fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        raise ValueError(f"Unknown log format: {fmt}")

    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
    )
