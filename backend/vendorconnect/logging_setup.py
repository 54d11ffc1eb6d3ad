"""Structured logging configuration and per-job log context."""

import logging
import sys
import time
import uuid
from contextlib import contextmanager
from typing import Iterator

import structlog

logger = structlog.get_logger()


def setup_logging(level: str = "INFO") -> None:
    """Configure structlog once for a console or worker process."""
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


@contextmanager
def job_context(job: str) -> Iterator[None]:
    """Bind the job name and a run ID to every log line emitted inside the block."""
    start_time = time.perf_counter()

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(job=job, run_id=uuid.uuid4().hex[:12])

    logger.info("job_started")
    try:
        yield
    except Exception as exc:
        logger.exception(
            "job_failed",
            error=str(exc),
            duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        raise
    else:
        logger.info(
            "job_completed",
            duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
    finally:
        structlog.contextvars.clear_contextvars()
