"""
Structured logging for crunchloop.

Events go through structlog into the standard ``logging`` root logger, which
renders them for a human on stderr and, when a log file is configured, as one
JSON object per line in that file. Stdout is left to command output.
"""

import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from time import perf_counter
from typing import List, Optional, TextIO

import structlog

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _pre_chain() -> List:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _handler(handler: logging.Handler, renderer) -> logging.Handler:
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=_pre_chain(),
        )
    )
    return handler


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[Path] = None,
    stream: Optional[TextIO] = None,
) -> List[logging.Handler]:
    """
    Route crunchloop logs to ``stream`` (stderr by default) and ``log_file``.

    Args:
        level: One of DEBUG, INFO, WARNING, ERROR
        json_output: Render the stream as JSON lines instead of console text
        log_file: Append JSON lines to this file as well
        stream: Where human-facing output goes

    Returns:
        The handlers installed on the root logger.
    """
    if level.upper() not in LOG_LEVELS:
        raise ValueError(f"log level must be one of {', '.join(LOG_LEVELS)}, got '{level}'")
    stream = stream if stream is not None else sys.stderr

    if json_output:
        stream_renderer = structlog.processors.JSONRenderer()
    else:
        stream_renderer = structlog.dev.ConsoleRenderer(
            colors=stream.isatty(),
            exception_formatter=structlog.dev.plain_traceback,
        )
    handlers = [_handler(logging.StreamHandler(stream), stream_renderer)]
    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            _handler(logging.FileHandler(path, encoding="utf-8"), structlog.processors.JSONRenderer())
        )

    structlog.configure(
        processors=_pre_chain() + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(level=level.upper(), handlers=handlers, force=True)
    return handlers


def get_logger(name: str = "crunchloop") -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


@contextmanager
def log_operation(logger: structlog.stdlib.BoundLogger, operation: str, **kwargs):
    """
    Log ``<operation>.started`` and then ``.completed`` or ``.failed``.

    Usage:
        with log_operation(log, "vm_start", vm_id=42) as oplog:
            oplog.info("vm_start.skipped")
    """
    oplog = logger.bind(operation=operation, **kwargs)
    started = perf_counter()
    oplog.info(f"{operation}.started")
    try:
        yield oplog
    except Exception as e:
        oplog.error(
            f"{operation}.failed",
            error=str(e),
            error_type=type(e).__name__,
            duration_ms=round((perf_counter() - started) * 1000, 2),
        )
        raise
    oplog.info(f"{operation}.completed", duration_ms=round((perf_counter() - started) * 1000, 2))
