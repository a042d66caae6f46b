"""Structured JSON logging for lifecycle and allocation events"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from lease_engine.config import settings

logger = logging.getLogger("lease_engine")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging on the root logger"""
    root = logging.getLogger()
    root.setLevel(level)

    # Remove existing handlers
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s"))
    root.addHandler(handler)


def log_transition(
    application_id: str,
    action: str,
    from_status: str,
    to_status: str,
    actor: str,
    no_op: bool = False,
) -> None:
    """Log an applied (or idempotently repeated) lifecycle transition"""
    logger.info(
        "Status transition",
        extra={
            "application_id": application_id,
            "step": "transition",
            "action": action,
            "from_status": from_status,
            "to_status": to_status,
            "actor": actor,
            "no_op": no_op,
        },
    )


def log_conflict(application_id: str, action: str, current: str, reason: str) -> None:
    logger.warning(
        "Status transition refused",
        extra={
            "application_id": application_id,
            "step": "transition_refused",
            "action": action,
            "current_status": current,
            "reason": reason,
        },
    )


def log_allocation(
    application_id: str,
    posted_cents: int,
    pending_cents: int,
    overage_cents: int,
    request_id: Optional[str] = None,
) -> None:
    """Log allocation totals; unassigned overage is surfaced at WARNING"""
    extra = {
        "application_id": application_id,
        "request_id": request_id,
        "step": "allocation",
        "posted_cents": posted_cents,
        "pending_cents": pending_cents,
        "overage_cents": overage_cents,
    }
    if overage_cents > 0:
        logger.warning("Payment overage left unassigned", extra=extra)
    else:
        logger.info("Allocation recomputed", extra=extra)
