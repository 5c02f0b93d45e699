"""Logging setup for the command-line tool."""

import logging
import sys
from datetime import datetime, timezone
from typing import Any

from pythonjsonlogger.json import JsonFormatter


class StatementJsonFormatter(JsonFormatter):
    """JSON formatter with timestamp, level and service fields."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = "statement-insights"


def setup_logging(level: str = "WARNING", json_format: bool = False) -> None:
    """
    Configure the package logger to write to stderr.

    Args:
        level: Log level name
        json_format: Emit one JSON object per line instead of plain text
    """
    logger = logging.getLogger("statement_insights")
    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    if json_format:
        handler.setFormatter(StatementJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s"))
    else:
        handler.setFormatter(logging.Formatter("%(levelname)s: %(name)s: %(message)s"))
    logger.addHandler(handler)
