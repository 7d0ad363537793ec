"""
Structured logging setup.

All application loggers go through structlog. Modules that use the standard
``logging.getLogger(__name__)`` are rendered by the same formatter, so worker
output and API output share one format.

Usage:
------
    from vista.core.logging import get_logger

    logger = get_logger(__name__)
    logger.info("page_synced", page_id=page_id, operation="updated")

Output format is chosen by ``LOG_FORMAT``:
- json: one JSON object per line (production, log shipping)
- text: colourless key=value console rendering (local development)
"""

import logging
import sys
from typing import Any

import structlog

from vista.core.config import settings

_configured = False


def _shared_processors() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]


def setup_logging() -> None:
    """
    Configure structlog and the stdlib root logger.

    Safe to call more than once (FastAPI app import and Celery worker boot
    both call it); only the first call has an effect.
    """
    global _configured
    if _configured:
        return

    if settings.LOG_FORMAT == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            *_shared_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_shared_processors(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.LOG_LEVEL)

    # Per-request access lines are noise next to the structured events
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to ``name``."""
    return structlog.get_logger(name)
