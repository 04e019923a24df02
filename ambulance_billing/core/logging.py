"""Logging setup: JSON records in deployed environments, plain text locally"""

import logging
import sys
from pythonjsonlogger import jsonlogger

from ambulance_billing.config import settings

# Libraries that are chatty at INFO
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosqlite", "botocore", "boto3")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Stamps each record with level, logger and deployment metadata"""

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["environment"] = settings.ENVIRONMENT
        log_record["service"] = settings.APP_NAME
        correlation_id = getattr(record, "correlation_id", None)
        if correlation_id:
            log_record["correlation_id"] = correlation_id


def _build_formatter() -> logging.Formatter:
    if settings.LOG_FORMAT == "json":
        return CustomJsonFormatter(fmt="%(asctime)s %(level)s %(name)s %(message)s")
    return logging.Formatter(
        fmt="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def setup_logging() -> None:
    """Install a single stdout handler on the root logger. Safe to call twice."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    for existing in root_logger.handlers:
        if getattr(existing, "_ambulance_billing", False):
            existing.setFormatter(_build_formatter())
            break
    else:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(_build_formatter())
        handler._ambulance_billing = True
        root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
