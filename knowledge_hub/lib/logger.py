"""Logging setup for knowledge-hub.

Records may carry knowledge fields through ``extra=``, e.g.
``logger.info("Updated", extra={"document_id": doc.id, "version": 2})``.
The JSON formatter emits them as top-level keys; the console formatter
appends them as ``key=value`` pairs.
"""

import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path

KNOWLEDGE_FIELDS = ("request_id", "user_id", "document_id", "version")

NOISY_LOGGERS = ("httpx", "httpcore", "multipart", "uvicorn.access")


def _knowledge_fields(record: logging.LogRecord) -> dict:
    return {
        name: getattr(record, name)
        for name in KNOWLEDGE_FIELDS
        if getattr(record, name, None) is not None
    }


class StructuredFormatter(logging.Formatter):
    """One JSON object per line; used for log files and ``structured=True``."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            **_knowledge_fields(record),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Colored single-line console output."""

    LEVEL_COLORS = {
        "DEBUG": "\033[2m",
        "INFO": "\033[34m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[1;31m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, "")
        line = f"{color}{record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"

        fields = _knowledge_fields(record)
        if fields:
            line += " " + " ".join(f"{k}={v}" for k, v in fields.items())
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    log_level: str = "INFO",
    log_file: str | None = None,
    structured: bool = False,
    quiet: bool = False,
) -> None:
    """Configure the root logger.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_file: Optional JSON-lines log file
        structured: Emit JSON on stderr too
        quiet: Only warnings from knowledge_hub, so CLI output stays clean
    """
    root = logging.getLogger()
    root.setLevel(log_level.upper())
    root.handlers.clear()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(StructuredFormatter() if structured else ConsoleFormatter())
    root.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path)
        file_handler.setFormatter(StructuredFormatter())
        root.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if quiet:
        logging.getLogger("knowledge_hub").setLevel(logging.WARNING)
    else:
        root.info(f"Logging initialized at {log_level.upper()}")


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
