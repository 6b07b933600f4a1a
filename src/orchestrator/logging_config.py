"""
Guest Review Hub Structured Logging Configuration
=================================================

Configures logging for the API, the sync CLI and the ingestion pipeline:
- JSON structured output (for production / log aggregation)
- Human-readable output (for development)
- File rotation

Usage:
    from src.orchestrator.logging_config import setup_logging

    setup_logging(json_output=True, log_file="logs/reviews.log")

    # Per-record context travels through `extra`:
    logger.warning("Skipped record", extra={"external_id": "hostaway-7453", "channel": "hostaway"})
"""

import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from typing import Optional

CONTEXT_FIELDS = ("source", "channel", "listing_id", "external_id", "duration")


class JSONFormatter(logging.Formatter):
    """
    Formats log records as JSON lines.

    Output format:
        {"ts": "2025-...", "level": "INFO", "logger": "src.data", "msg": "...", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key in CONTEXT_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                log_entry[key] = val

        return json.dumps(log_entry, default=str)


class ContextAdapter(logging.LoggerAdapter):
    """
    Logger adapter that stamps bound context (source, listing_id, ...) onto
    every record so the JSON formatter can emit it as top-level keys.
    Per-call `extra` entries win over bound ones.
    """

    def process(self, msg, kwargs):
        merged = dict(self.extra)
        merged.update(kwargs.get("extra") or {})
        kwargs["extra"] = merged
        return msg, kwargs


def bind(logger: logging.Logger, **context) -> ContextAdapter:
    """Return `logger` wrapped so every record carries `context`."""
    return ContextAdapter(logger, {k: v for k, v in context.items() if k in CONTEXT_FIELDS})


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[str] = None,
    max_bytes: int = 10 * 1024 * 1024,  # 10 MB
    backup_count: int = 5,
):
    """
    Configure application logging.

    Args:
        level: Root log level (DEBUG, INFO, WARNING, ERROR)
        json_output: Use JSON structured format
        log_file: Optional file path for log output (with rotation)
        max_bytes: Max file size before rotation
        backup_count: Number of rotated files to keep
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    root.handlers.clear()

    if json_output:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)-8s] %(name)-32s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # Quiet noisy libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    root.info(
        "Logging configured: level=%s json=%s file=%s",
        level, json_output, log_file or "none",
    )
