"""
Logging configuration with JSON formatter for structured logging.
Records logged through a BookingLogContext carry the booking they belong to.
"""
import logging
import sys
from typing import Any, Dict, MutableMapping, Tuple

from pythonjsonlogger import jsonlogger

from core.config import settings


# Keys a BookingLogContext stamps onto records
BOOKING_CONTEXT_FIELDS = (
    "restaurant_id",
    "session_id",
    "experience_id",
    "party_size",
    "menu_policy",
)


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with application and booking fields."""

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any]
    ) -> None:
        """Add custom fields to log record."""
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = self.formatTime(record, self.datefmt)
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['module'] = record.module
        log_record['function'] = record.funcName
        log_record['line'] = record.lineno

        log_record['app_name'] = settings.app_name
        log_record['environment'] = settings.app_env

        # Booking keys are always present, null outside a booking
        for key in BOOKING_CONTEXT_FIELDS:
            log_record.setdefault(key, getattr(record, key, None))

        if record.exc_info:
            log_record['exc_info'] = self.formatException(record.exc_info)


class BookingTextFormatter(logging.Formatter):
    """Human-readable formatter that appends the booking context when a record has one."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = " ".join(
            f"{key}={getattr(record, key)}"
            for key in BOOKING_CONTEXT_FIELDS
            if getattr(record, key, None) is not None
        )
        return f"{message} [{context}]" if context else message


def setup_logging() -> None:
    """
    Configure application logging.

    Staging and production get structured JSON lines, development gets a
    human-readable format.
    """
    use_json = settings.app_env in ["production", "staging"]

    if use_json:
        formatter = CustomJsonFormatter(
            fmt='%(timestamp)s %(level)s %(name)s %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
    else:
        formatter = BookingTextFormatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Selection events are chatty at DEBUG
    if not settings.is_development:
        logging.getLogger("services.addon_selection").setLevel(logging.INFO)

    logging.info(
        "Logging configured",
        extra={
            "log_level": settings.log_level,
            "environment": settings.app_env,
            "json_logging": use_json
        }
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Args:
        name: The name of the logger (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


class BookingLogContext(logging.LoggerAdapter):
    """Logger adapter adding booking context to every record it logs."""

    def __init__(self, logger: logging.Logger, **context: Any):
        """
        Initialize log context.

        Args:
            logger: Logger to write to
            **context: Booking fields to add to each record; None values are dropped
        """
        super().__init__(logger, {k: v for k, v in context.items() if v is not None})

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs
