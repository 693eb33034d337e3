"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger
from installment_engine.config import settings


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


def log_plan_created(
    request_id: str,
    plan_id: str,
    invoice_id: str,
    total_cents: int,
    number_of_installments: int,
    frequency: str,
) -> None:
    """Log plan creation fact for the audit collaborator"""
    logging.info(
        "Payment plan created",
        extra={
            "request_id": request_id,
            "step": "plan_created",
            "plan_id": plan_id,
            "invoice_id": invoice_id,
            "total_cents": total_cents,
            "number_of_installments": number_of_installments,
            "frequency": frequency,
        },
    )


def log_plan_modified(plan_id: str, updated: int, skipped_paid: int, modified_by: str | None) -> None:
    logging.info(
        "Payment plan modified",
        extra={
            "step": "plan_modified",
            "plan_id": plan_id,
            "installments_updated": updated,
            "paid_installments_skipped": skipped_paid,
            "modified_by": modified_by,
        },
    )


def log_sweep(sweep: str, duration_ms: float, **counts: int) -> None:
    """Log structured sweep outcome for operational visibility"""
    logging.info(
        "Sweep completed",
        extra={
            "step": "sweep_complete",
            "sweep": sweep,
            "duration_ms": duration_ms,
            **counts,
        },
    )
