"""Structured logging for sampling runs.

Every line is rendered as ``<run_id> {json}``. Once the parameters are
known, the run context (method, test type, seed and parameter hash) is
bound as well, so any single line can be traced back to the exact sample it
belongs to.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import structlog
from structlog.types import EventDict, WrappedLogger

from .models import SamplingParameters

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _run_line_renderer(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> str:
    """Render a log line as ``<run_id> {json}``.

    The run id moves to the prefix; the remaining keys are sorted so lines
    from repeated runs diff cleanly.
    """
    del logger, method_name  # unused but required by structlog signature
    run_id = event_dict.pop("run_id", "-")
    payload = json.dumps(
        event_dict, sort_keys=True, separators=(",", ":"), default=str
    )
    return f"{run_id} {payload}"


def configure_logging(run_id: str, level: str = "INFO") -> None:
    """Configure structlog and stdlib logging for a sampling run.

    Args:
        run_id (str): Identifier bound to every line of the run.
        level (str): One of ``LOG_LEVELS``.

    Raises:
        ValueError: If ``level`` is not a supported level name.
    """
    name = level.upper()
    if name not in LOG_LEVELS:
        raise ValueError(f"unsupported log level: {level}")
    numeric = getattr(logging, name)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _run_line_renderer,
    ]

    logging.basicConfig(level=numeric, format="%(message)s")
    # basicConfig is a no-op once handlers exist
    logging.getLogger().setLevel(numeric)
    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
    )
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(run_id=run_id)


def bind_run_context(params: SamplingParameters, param_hash: str) -> None:
    """Bind the sampling configuration to all later log lines of the run."""
    structlog.contextvars.bind_contextvars(
        method=params.method.value,
        test_type=params.test_type.value,
        seed=params.seed,
        param_hash=param_hash,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
