"""
JSON logs for API, Celery workers and scripts.
Message is the event key (settlement_completed, webhook_signature_invalid, ...),
context goes through `extra` and only whitelisted fields are emitted.
"""
import json
import logging
from logging.handlers import RotatingFileHandler
from datetime import datetime, timezone

from app.core.config import settings

# access log duplicates the request_logging middleware; httpx logs every gateway call
QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore")


class JsonFormatter(logging.Formatter):
    # Settlement context first, then HTTP, then breaker
    EXTRA_FIELDS = (
        "user_id", "order_id", "payment_id", "content_ref", "channel",
        "status", "amount", "currency", "total", "restored", "already_granted",
        "request_id", "path", "method", "status_code", "latency_ms",
        "error", "breaker_name", "old_state", "new_state",
    )

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        payload.update(
            (field, getattr(record, field))
            for field in self.EXTRA_FIELDS
            if getattr(record, field, None) is not None
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        # Decimal / datetime / enum values from extra
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging() -> None:
    """Idempotent: replaces root handlers, safe to call from API, worker and scripts."""
    formatter = JsonFormatter()
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(
            RotatingFileHandler(
                settings.log_file,
                maxBytes=settings.log_max_bytes,
                backupCount=settings.log_backup_count,
            )
        )
    for handler in handlers:
        handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(settings.log_level.upper())
    root.handlers = handlers
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
