"""
Structured logging configuration using structlog.

Every module logs through structlog.get_logger(__name__) with snake_case
event names; this module only decides how those events are rendered.
Output goes to stderr so CLI results on stdout stay machine readable.
"""

import logging
import sys
from typing import List, Optional

import structlog

from .config import settings


def _render_processors(as_json: bool) -> List:
    if as_json:
        # Exceptions become structured dicts inside the JSON line
        return [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]


def setup_logging(log_level: Optional[str] = None, log_json: Optional[bool] = None) -> None:
    """
    Configure structlog for the process.

    Args:
        log_level: Override for settings.log_level
        log_json: Override for settings.log_json (JSON lines vs console output)
    """
    level = (log_level or settings.log_level).upper()
    as_json = settings.log_json if log_json is None else log_json

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            *_render_processors(as_json),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
