from __future__ import annotations

import logging
import sys
from pathlib import Path

import structlog
from structlog.typing import EventDict, Processor

from serve_markdown.config import AppSettings
from serve_markdown.telemetry import TELEMETRY_LOGGER_NAME

APP_LOGGER_NAME = "serve_markdown"
LOG_FILE_NAME = "serve-markdown.log"
TELEMETRY_LOG_FILE_NAME = "serve-markdown-telemetry.log"


def configure_application_logging(settings: AppSettings) -> Path:
    """Console plus JSON file logging; telemetry events get their own file."""
    settings.log_dir.mkdir(parents=True, exist_ok=True)
    log_file = settings.log_dir / LOG_FILE_NAME
    telemetry_log_file = settings.log_dir / TELEMETRY_LOG_FILE_NAME

    _configure_structlog()
    _install_handlers(
        APP_LOGGER_NAME,
        logging.DEBUG,
        _build_console_handler(settings.log_level),
        _build_file_handler(log_file, logging.DEBUG),
    )
    _install_handlers(
        TELEMETRY_LOGGER_NAME,
        logging.INFO,
        _build_file_handler(telemetry_log_file, logging.INFO),
    )

    logging.getLogger(APP_LOGGER_NAME).info(
        "logging configured console_level=%s path=%s telemetry_path=%s",
        settings.log_level.upper(),
        log_file,
        telemetry_log_file,
    )
    return log_file


def configure_cli_logging(level: str = "WARNING") -> None:
    """Console-only logging for one-shot admin commands."""
    _configure_structlog()
    _install_handlers(
        APP_LOGGER_NAME,
        _resolve_log_level(level),
        _build_console_handler(level, stream=sys.stderr),
    )
    _install_handlers(TELEMETRY_LOGGER_NAME, logging.INFO, logging.NullHandler())


def _install_handlers(name: str, level: int, *handlers: logging.Handler) -> None:
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        logger.addHandler(handler)


def _resolve_log_level(raw_level: str) -> int:
    normalized = raw_level.strip().upper()
    resolved = getattr(logging, normalized, None)
    if isinstance(resolved, int):
        return resolved
    return logging.INFO


def _configure_structlog() -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def _build_console_handler(level: str, *, stream: object = None) -> logging.Handler:
    console_stream = stream if stream is not None else sys.stdout
    console_handler = logging.StreamHandler(stream=console_stream)  # type: ignore[arg-type]
    console_handler.setLevel(_resolve_log_level(level))
    console_handler.setFormatter(
        _build_console_formatter(enable_colors=_stream_supports_color(console_stream))
    )
    return console_handler


def _build_file_handler(log_file: Path, level: int) -> logging.Handler:
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(_build_file_formatter())
    return file_handler


def _build_console_formatter(*, enable_colors: bool) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_shared_pre_chain(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(colors=enable_colors),
        ],
    )


def _build_file_formatter() -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_shared_pre_chain(),
        processors=[
            _add_record_metadata,
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ],
    )


def _shared_pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
    ]


def _add_record_metadata(
    _logger: logging.Logger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    record = event_dict.get("_record")
    if isinstance(record, logging.LogRecord):
        event_dict["pathname"] = record.pathname
        event_dict["lineno"] = record.lineno
        event_dict["func_name"] = record.funcName
        event_dict["thread_name"] = record.threadName
    return event_dict


def _stream_supports_color(stream: object) -> bool:
    isatty = getattr(stream, "isatty", None)
    if callable(isatty):
        try:
            return bool(isatty())
        except (OSError, ValueError):
            return False
    return False
