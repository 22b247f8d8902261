"""Structured logging configuration for SuperSearch."""

import logging
from typing import Optional

import structlog
from structlog.stdlib import LoggerFactory


def configure_logging(log_level: str = "INFO", json_logs: bool = False) -> None:
    """Configure structured logging for SuperSearch."""

    # Set log level
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(level=numeric_level)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]

    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        cache_logger_on_first_use=True,
    )


def get_audit_logger(component: str) -> structlog.BoundLogger:
    """Get a logger bound to a specific component.

    The logger stays lazy, so module-level loggers pick up the configuration
    applied later by configure_logging.
    """
    return structlog.get_logger(component, component=component, audit=True)


def log_batch_flushed(
    logger: structlog.BoundLogger,
    kind: str,
    size: int,
    first_id: str,
) -> None:
    """Log one upsert batch leaving a queue."""
    logger.debug(
        "batch_flushed",
        kind=kind,
        size=size,
        first_id=first_id,
        event_type="batch_flush",
    )


def log_embed_run(
    logger: structlog.BoundLogger,
    collection: str,
    pipeline: str,
    stats: dict,
    duration_ms: float,
    succeeded: bool,
    error: Optional[str] = None,
) -> None:
    """Log the outcome of an embedding run."""
    logger.info(
        "embed_run_finished",
        collection=collection,
        pipeline=pipeline,
        succeeded=succeeded,
        error=error,
        duration_ms=duration_ms,
        event_type="embed_run",
        **stats,
    )


def log_search(
    logger: structlog.BoundLogger,
    query: str,
    generation: int,
    result_count: int,
    execution_time_ms: float,
) -> None:
    """Log a completed (non-stale) search request."""
    logger.info(
        "search_completed",
        query=query,
        generation=generation,
        result_count=result_count,
        execution_time_ms=execution_time_ms,
        event_type="search",
    )
