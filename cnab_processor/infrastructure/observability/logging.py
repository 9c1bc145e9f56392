"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from cnab_processor.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_import(
    request_id: str,
    file_name: str,
    parsed: int,
    skipped: int,
    inserted: int,
    duration_ms: float,
) -> None:
    """Log structured import outcome for analysis"""
    logging.getLogger("cnab_processor.import").info(
        "Import completed",
        extra={
            "request_id": request_id,
            "file_name": file_name,
            "step": "import_complete",
            "parsed_count": parsed,
            "skipped_count": skipped,
            "inserted_count": inserted,
            "duration_ms": duration_ms,
        },
    )
