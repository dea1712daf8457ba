"""Logging setup: structlog events rendered through rich on stderr."""

import logging
from pathlib import Path
from typing import Optional

import structlog
from rich.console import Console
from rich.logging import RichHandler

# Shared with the download progress bar so log lines print above the live
# display instead of tearing it. stdout stays free for `links` output.
console = Console(stderr=True)

NOISY_LOGGERS = ("httpx", "httpcore", "chardet")


def _drop_handler_fields(logger, method_name, event_dict):
    """RichHandler prints level and time itself."""
    for key in ("timestamp", "level", "logger"):
        event_dict.pop(key, None)
    return event_dict


def configure_logging(verbosity: int = 0, log_file: Optional[Path] = None) -> None:
    """Route structlog events to the rich console and, optionally, a JSON file.

    Args:
        verbosity: -1 shows warnings only, 0 info, 1 debug
        log_file: Optional path receiving every event as a JSON line
    """
    level = {-1: logging.WARNING, 1: logging.DEBUG}.get(verbosity, logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    rich_handler = RichHandler(console=console, show_path=False, markup=False)
    rich_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _drop_handler_fields,
                structlog.dev.ConsoleRenderer(colors=False, pad_event=24),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(rich_handler)
    root.setLevel(level)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processors=[
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    structlog.processors.JSONRenderer(),
                ],
            )
        )
        file_handler.setLevel(logging.DEBUG)
        root.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
