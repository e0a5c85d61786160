"""
logging_config.py - Centralized JSON Logging Configuration

PURPOSE:
    Structured JSON logging for the purchase service with timezone-aware
    timestamps, correlation tracking and service-name injection.

JSON LOG FIELDS:
    - timestamp: ISO 8601 in the configured timezone (default UTC)
    - level: Log level (INFO, ERROR, WARNING, DEBUG, CRITICAL)
    - logger: Module name where the log originated (e.g. "reservation")
    - message: The log message
    - service_name: Name of the service (injected automatically)
    - correlation_id / event_type / order_id / product_id / provider_order_id:
      optional context passed through ``extra=``
    - exception: Full stack trace (only when exc_info is attached)

USAGE:
    from logging_config import setup_logging
    setup_logging("purchase-service", level="INFO")

    logger = logging.getLogger(__name__)
    logger.info("Order placed", extra={"order_id": 12, "correlation_id": cid})

EXAMPLE JSON OUTPUT:
    {
        "timestamp": "2026-10-18T22:48:51.001014+00:00",
        "level": "INFO",
        "logger": "orchestrator",
        "message": "Purchase completed for product 1",
        "service_name": "purchase-service",
        "correlation_id": "9a63a606-fbef-4a4b-a5a4-ef1f127bc304",
        "order_id": 12
    }
"""

import json
import logging
import sys
from datetime import datetime
from zoneinfo import ZoneInfo
from typing import Any, Dict

CONTEXT_FIELDS = (
    "service_name",
    "correlation_id",
    "event_type",
    "order_id",
    "product_id",
    "provider_order_id",
)


class JsonFormatter(logging.Formatter):
    """Custom formatter that outputs JSON logs with correlation context."""

    def __init__(self, tz: str = "UTC"):
        super().__init__()
        self.tz = ZoneInfo(tz)

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, self.tz).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ServiceFilter(logging.Filter):
    """Stamps every record with the owning service's name."""

    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = self.service_name
        return True


def setup_logging(service_name: str, level: str = "INFO", tz: str = "UTC") -> None:
    """Setup JSON logging for a service.

    Safe to call more than once: the handler installed by a previous call is
    replaced rather than stacked.
    """
    logger = logging.getLogger()
    logger.setLevel(level)

    for existing in list(logger.handlers):
        if getattr(existing, "_json_service_handler", False):
            logger.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter(tz))
    # Filter on the handler so records from child loggers are stamped too
    handler.addFilter(ServiceFilter(service_name))
    handler._json_service_handler = True
    logger.addHandler(handler)
