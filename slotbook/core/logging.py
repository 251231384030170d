"""Structured logging configuration."""

import logging
import sys
from typing import Any

from slotbook.core.config import settings


class StructuredFormatter(logging.Formatter):
    """Key=value formatter for non-dev environments."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with structured data."""
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Extra fields passed via logger.info(..., extra={...})
        for key in ("request_id", "actor_id", "appointment_id", "action"):
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        parts = [f"{k}={v}" for k, v in log_data.items()]
        return " ".join(parts)


def setup_logging() -> None:
    """Configure application logging."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)

    if settings.is_dev:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
    else:
        formatter = StructuredFormatter()

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)


class AuditLogger:
    """Logger specifically for appointment audit entries."""

    def __init__(self) -> None:
        self.logger = get_logger("audit")

    def log(
        self,
        action: str,
        actor_role: str,
        actor_id: str,
        appointment_id: str,
        previous_status: str | None,
        new_status: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Log an audit entry."""
        self.logger.info(
            f"AUDIT: action={action} actor={actor_role}:{actor_id} "
            f"appointment={appointment_id} "
            f"status={previous_status or '-'}->{new_status} "
            f"metadata={metadata or {}}",
            extra={
                "actor_id": actor_id,
                "appointment_id": appointment_id,
                "action": action,
            },
        )


audit_logger = AuditLogger()
