"""
Logging Configuration for the Texas Sales Map backend

structlog renders both its own events and stdlib records (uvicorn, httpx,
SQLAlchemy) through one handler on stdout. Import runs bind a run id and a
trigger into contextvars so every line of a run can be grouped.
"""

import logging
import sys
import uuid
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

import structlog
from structlog.processors import JSONRenderer, TimeStamper
from structlog.stdlib import add_log_level, ProcessorFormatter

from txsales.config.settings import get_settings

# Routed through our handler at the application level
ROUTED_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

# Floors for chatty libraries; httpx logs every page request at INFO
LIBRARY_FLOORS: Dict[str, int] = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
}


def _renderer(log_format: str):
    if log_format == "json":
        return JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def configure_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
) -> None:
    """
    Configure structured logging for the process.

    Args:
        log_level: Override of LOG_LEVEL (DEBUG, INFO, WARNING, ERROR)
        log_format: Override of LOG_FORMAT ("json" or "console")
    """
    settings = get_settings()
    level_name = (log_level or settings.monitoring.log_level).upper()
    level = getattr(logging, level_name, logging.INFO)
    log_format = log_format or settings.monitoring.log_format

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        add_log_level,
        TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=shared_processors + [ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        ProcessorFormatter(processor=_renderer(log_format), foreign_pre_chain=shared_processors)
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    for name in ROUTED_LOGGERS:
        routed = logging.getLogger(name)
        routed.handlers = [handler]
        routed.propagate = False
        routed.setLevel(level)

    for name, floor in LIBRARY_FLOORS.items():
        logging.getLogger(name).setLevel(max(level, floor))

    # SQL echo is controlled by POSTGRES_ECHO, not by the log level
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.database.echo else logging.WARNING
    )

    structlog.get_logger(__name__).info(
        "Logging configured",
        level=level_name,
        format=log_format,
        environment=settings.app_env,
    )


@contextmanager
def import_run_context(trigger: str) -> Iterator[str]:
    """
    Tag every log line emitted inside the block with a run id and trigger.

    Example:
        with import_run_context("scheduled") as run_id:
            await importer.run_incremental_import()
    """
    run_id = uuid.uuid4().hex[:12]
    with structlog.contextvars.bound_contextvars(import_run=run_id, trigger=trigger):
        yield run_id
