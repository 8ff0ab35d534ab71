"""structlog setup for the Trade Risk service.

Debug runs render coloured key/value lines on the console; everything else
emits one JSON object per event so trade and risk events can be shipped as
is. The minimum level comes from ``settings.log_level``.

Engine modules take their loggers from :func:`get_logger` at import time.
Those are lazy proxies, so the processors chosen by :func:`configure_logging`
(called once by each process entry point) apply to them retroactively.
"""

import logging

import structlog

from trade_risk.core.config import settings

_configured = False


def _level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def build_processors(debug: bool) -> list:
    """Processor chain for console (debug) or JSON output."""
    renderer = (
        structlog.dev.ConsoleRenderer()
        if debug
        else structlog.processors.JSONRenderer(sort_keys=True)
    )
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        renderer,
    ]


def configure_logging(debug: bool | None = None, level: str | None = None) -> None:
    """Configure structlog once per process.

    Args:
        debug: Console rendering when true, JSON otherwise. Defaults to
            ``settings.debug``.
        level: Minimum level name. Defaults to ``settings.log_level``, or
            DEBUG when running in debug mode.
    """
    global _configured
    if _configured:
        return

    debug = settings.debug if debug is None else debug
    if level is None:
        level = "DEBUG" if debug else settings.log_level

    structlog.configure(
        processors=build_processors(debug),
        wrapper_class=structlog.make_filtering_bound_logger(_level(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=not debug,
    )
    _configured = True


def get_logger(name: str):
    """Lazy structlog logger carrying ``logger_name``.

    Does not configure anything itself; see :func:`configure_logging`.
    """
    return structlog.get_logger(logger_name=name)
