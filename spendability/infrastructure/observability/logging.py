"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

SERVICE_NAME = "spendability-engine"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = SERVICE_NAME


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


def log_spendability(
    request_id: str,
    user_id: str,
    safe_to_spend_now: Decimal,
    days_until_payday: int,
    warning_count: int,
    duration_ms: float,
) -> None:
    """Log structured spendability outcome for analysis"""
    logging.info(
        "Spendability report completed",
        extra={
            "request_id": request_id,
            "user_id": user_id,
            "step": "spendability_complete",
            "can_spend": safe_to_spend_now > 0,
            "safe_to_spend_now": str(safe_to_spend_now),
            "days_until_payday": days_until_payday,
            "warning_count": warning_count,
            "duration_ms": duration_ms,
        },
    )
