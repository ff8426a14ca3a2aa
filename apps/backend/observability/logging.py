"""
Log setup for the research backend: request correlation IDs and key scrubbing.

Modules log through plain `logging.getLogger(__name__)` with a "[Component]"
prefix; only the entry points (main.py, scripts/) call `setup_logging()`.
"""

import logging
import os
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from utils.security import SENSITIVE_KEYS, redact_secrets_from_text

_correlation_id_ctx: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

SENSITIVE_FIELDS = SENSITIVE_KEYS | {"serper_api_key", "google_cse_api_key", "openrouter_api_key", "gemini_api_key"}


def get_correlation_id() -> Optional[str]:
    return _correlation_id_ctx.get()


class correlation_id_context:
    """Binds a request ID (a fresh `req-...` one when none is given) for the enclosed block."""

    def __init__(self, correlation_id: Optional[str] = None):
        self.correlation_id = correlation_id or f"req-{uuid.uuid4().hex[:16]}"
        self.token = None

    def __enter__(self) -> str:
        self.token = _correlation_id_ctx.set(self.correlation_id)
        return self.correlation_id

    def __exit__(self, exc_type, exc_val, exc_tb):
        _correlation_id_ctx.reset(self.token)


class CorrelationIDFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or "none"
        return True


class SecretRedactionFilter(logging.Filter):
    """Scrubs provider keys from messages (request URLs carry the CSE and Gemini keys) and extra fields."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_secrets_from_text(message)
        if redacted != message:
            record.msg, record.args = redacted, None

        for key in SENSITIVE_FIELDS.intersection(record.__dict__):
            setattr(record, key, "[REDACTED]")
        return True


class ResearchJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["correlation_id"] = getattr(record, "correlation_id", "none")
        log_record["service"] = "collectible-research-backend"


def setup_logging() -> None:
    """
    Configure the root logger.

    Environment variables:
    - LOG_LEVEL: Logging level (default INFO)
    - LOG_FORMAT: json or text (default: json when ENVIRONMENT=production, text otherwise)
    """
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    log_format = os.getenv("LOG_FORMAT", "json" if os.getenv("ENVIRONMENT") == "production" else "text")

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    if log_format == "json":
        formatter = ResearchJsonFormatter(
            "%(asctime)s %(level)s %(logger)s %(correlation_id)s %(message)s",
            rename_fields={"asctime": "@timestamp"},
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(correlation_id)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    handler.addFilter(CorrelationIDFilter())
    handler.addFilter(SecretRedactionFilter())
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    # httpx logs full request URLs at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
