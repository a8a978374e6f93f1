from __future__ import annotations

import json
import logging
from pathlib import Path

from serve_markdown.config import load_settings
from serve_markdown.logging_config import (
    APP_LOGGER_NAME,
    TELEMETRY_LOG_FILE_NAME,
    configure_application_logging,
    configure_cli_logging,
)
from serve_markdown.telemetry import TELEMETRY_LOGGER_NAME


def _detach(*names: str) -> None:
    for name in names:
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()


def test_application_logging_writes_json_lines(tmp_path: Path) -> None:
    settings = load_settings(data_dir=tmp_path, log_level="WARNING")

    try:
        log_file = configure_application_logging(settings)
        logging.getLogger(f"{APP_LOGGER_NAME}.tests").info("sweep finished deleted=%s", 3)
        for handler in logging.getLogger(APP_LOGGER_NAME).handlers:
            handler.flush()

        assert log_file == tmp_path.resolve() / "logs" / "serve-markdown.log"
        assert (tmp_path / "logs" / TELEMETRY_LOG_FILE_NAME).exists()
        records = [
            json.loads(line)
            for line in log_file.read_text(encoding="utf-8").splitlines()
            if line.strip()
        ]
        assert records[-1]["event"] == "sweep finished deleted=3"
        assert records[-1]["level"] == "info"
        assert records[-1]["logger"] == f"{APP_LOGGER_NAME}.tests"
    finally:
        _detach(APP_LOGGER_NAME, TELEMETRY_LOGGER_NAME)


def test_cli_logging_is_console_only() -> None:
    try:
        configure_cli_logging("error")

        app_logger = logging.getLogger(APP_LOGGER_NAME)
        telemetry_logger = logging.getLogger(TELEMETRY_LOGGER_NAME)
        assert app_logger.level == logging.ERROR
        assert [type(handler) for handler in app_logger.handlers] == [logging.StreamHandler]
        assert [type(handler) for handler in telemetry_logger.handlers] == [logging.NullHandler]
    finally:
        _detach(APP_LOGGER_NAME, TELEMETRY_LOGGER_NAME)
