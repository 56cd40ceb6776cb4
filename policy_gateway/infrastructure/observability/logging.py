"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

from policy_gateway.config import settings

logger = logging.getLogger("policy_gateway")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    root = logging.getLogger()
    root.setLevel(level)

    # Remove existing handlers
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    root.addHandler(handler)


def log_application_submitted(application_id: str, insurance_type: str, request_id: Optional[str] = None) -> None:
    logger.info(
        "Application submitted",
        extra={
            "request_id": request_id,
            "application_id": application_id,
            "step": "application_submitted",
            "insurance_type": insurance_type,
        },
    )


def log_review(application_id: str, reviewer: str, status: str, request_id: Optional[str] = None) -> None:
    """Log a successful review decision for the audit trail"""
    logger.info(
        "Application reviewed",
        extra={
            "request_id": request_id,
            "application_id": application_id,
            "step": "application_reviewed",
            "reviewer": reviewer,
            "status": status,
        },
    )


def log_claim_event(step: str, claim_id: str, application_id: str, status: str, request_id: Optional[str] = None) -> None:
    logger.info(
        "Claim %s",
        step.replace("_", " "),
        extra={
            "request_id": request_id,
            "claim_id": claim_id,
            "application_id": application_id,
            "step": step,
            "status": status,
        },
    )


def log_invalid_transition(
    record_id: str, reviewer: str, current_status: str, requested: str, entity: str = "application"
) -> None:
    """Rejected review; may be two reviewers racing on one record"""
    logger.warning(
        "Invalid status transition",
        extra={
            "entity": entity,
            f"{entity}_id": record_id,
            "step": "invalid_transition",
            "reviewer": reviewer,
            "current_status": current_status,
            "requested": requested,
        },
    )


def log_payment_event(
    step: str,
    intent_id: str,
    status: str,
    amount_minor: Optional[int] = None,
    currency: Optional[str] = None,
    level: int = logging.INFO,
) -> None:
    """Log a ledger change. Client secrets and payment tokens never reach this function."""
    logger.log(
        level,
        "Payment %s",
        step.replace("_", " "),
        extra={
            "step": step,
            "intent_id": intent_id,
            "transaction_status": status,
            "amount_minor": amount_minor,
            "currency": currency,
        },
    )
