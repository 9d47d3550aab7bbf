"""
Structured logging configuration using structlog.

Console output goes to stderr so stdout carries only signal output (the CLI
`--json` mode is meant to be piped). The optional log file is always written
as JSON lines, one event per line, regardless of the console format.
"""

import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import structlog

# Libraries that log every HTTP request at INFO/DEBUG
_NOISY_LOGGERS = ("urllib3", "requests")


def _shared_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.ExtraAdder(),
    ]


def _console_renderer(json_format: bool):
    if json_format:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=sys.stderr.isatty(),
        exception_formatter=structlog.dev.RichTracebackFormatter(
            show_locals=False,
            max_frames=10,
        ),
    )


def _formatter(renderer, pre_chain: list) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
    json_format: bool = False,
) -> None:
    """
    Configure structured logging for the signal engine.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to a JSON-lines log file
        json_format: Render console logs as JSON instead of the colored format
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    pre_chain = _shared_processors()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(_formatter(_console_renderer(json_format), pre_chain))
    handlers: list[logging.Handler] = [console_handler]

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(
            _formatter(
                structlog.processors.JSONRenderer(),
                pre_chain + [structlog.processors.format_exc_info],
            )
        )
        handlers.append(file_handler)

    for handler in handlers:
        handler.setLevel(level)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=pre_chain + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


@contextmanager
def evaluation_context(symbol: str, strategy: str) -> Iterator[None]:
    """
    Tag every log event emitted inside the block with symbol and strategy.

    Context variables are per thread / task, so concurrent evaluations do
    not mix their tags.
    """
    with structlog.contextvars.bound_contextvars(symbol=symbol, strategy=strategy):
        yield


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Structured logger instance
    """
    return structlog.get_logger(name)
