"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = "commission-gateway"


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


def log_approval(
    request_id: str,
    transaction_id: str,
    payout_id: str | None,
    payout_amount_cents: int | None,
    duration_ms: float,
) -> None:
    """Log structured approval outcome for analysis"""
    logging.info(
        "Approval completed",
        extra={
            "request_id": request_id,
            "transaction_id": transaction_id,
            "step": "approval_complete",
            "payout_id": payout_id,
            "payout_amount_cents": payout_amount_cents,
            "duration_ms": duration_ms,
        },
    )


def log_payout_transition(payout_id: str, from_status: str, to_status: str, actor_id: str) -> None:
    """Log a single payout status change"""
    logging.info(
        "Payout transitioned",
        extra={
            "step": "payout_transition",
            "payout_id": payout_id,
            "from_status": from_status,
            "to_status": to_status,
            "actor_id": actor_id,
        },
    )
