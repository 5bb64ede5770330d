"""
Structured logging for the TOEIC admin console.

Every module logs through ``structlog.get_logger(__name__)``. Events go to
stderr so tables and messages printed on stdout stay clean, and each run
carries a short correlation id that can be matched with backend logs.
"""

import logging
import sys
import uuid
from typing import Optional

import structlog
from rich.console import Console
from rich.logging import RichHandler

CORRELATION_KEY = "correlation_id"


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Bind a correlation id to every event logged from now on."""
    correlation_id = correlation_id or uuid.uuid4().hex[:8]
    structlog.contextvars.bind_contextvars(**{CORRELATION_KEY: correlation_id})
    return correlation_id


def setup_logging(debug: bool = False, rich_output: bool = True) -> None:
    """
    Configure structlog (and stdlib logging used by httpx).

    Args:
        debug: Log DEBUG events; otherwise only warnings and errors are shown
        rich_output: Render with rich for a terminal, or as JSON lines
    """
    level = logging.DEBUG if debug else logging.WARNING
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.dev.set_exc_info,
    ]

    if rich_output:
        console = Console(stderr=True)
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=console.is_terminal,
                exception_formatter=structlog.dev.rich_traceback,
            )
        )
        handler: logging.Handler = RichHandler(console=console, show_path=False)
    else:
        processors.append(structlog.processors.JSONRenderer())
        handler = logging.StreamHandler(sys.stderr)

    logging.basicConfig(level=level, format="%(message)s", datefmt="[%X]", handlers=[handler])
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug else logging.WARNING)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.WriteLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
