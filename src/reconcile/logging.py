"""Structured logging for the reconciliation engine, built on structlog.

Scripts call setup_logging() once at startup; library modules only ever call
get_logger(__name__). Per-request context (booking id, job number) is bound
with structlog contextvars so every event inside one reconciliation carries it.
"""

import logging
import sys

import structlog

from src.reconcile.config import ReconcileConfig, get_config


def setup_logging(
    json_output: bool | None = None,
    log_level: str | None = None,
    config: ReconcileConfig | None = None,
) -> None:
    """Configure structlog processors and the output renderer.

    Explicit arguments win; anything left as None is read from the
    configuration (RECONCILE_LOG_JSON / RECONCILE_LOG_LEVEL).

    Args:
        json_output: If True, render JSON lines. If False, console format.
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        config: Configuration to fall back on. Defaults to get_config().
    """
    cfg = config or get_config()
    if json_output is None:
        json_output = cfg.log_json
    if log_level is None:
        log_level = cfg.log_level

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    # stderr keeps stdout free for the scripts' JSON output
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=numeric_level,
    )
    logging.getLogger().handlers = []
    logging.getLogger().addHandler(logging.StreamHandler(sys.stderr))


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger bound with the module name.

    Args:
        name: Logger name (typically __name__ from calling module).
    """
    return structlog.get_logger(name)
