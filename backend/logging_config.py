"""
Skool Member Sync - Logging

One stdout handler on the root logger: a JSON object per line in production,
plain text in development. Every record is stamped with the sync context of
the webhook delivery being handled. The context fills up as the delivery
progresses: request id, then member email, then the reconcile stage and the
profile/identity ids once each is known.
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict

SYNC_CONTEXT_KEYS = ("request_id", "member_email", "stage", "profile_id", "identity_id")

_sync_context: ContextVar[Dict[str, Any]] = ContextVar("sync_context", default={})

NOISY_LOGGERS = ("uvicorn.access", "httpx", "urllib3", "google")


def bind_sync_context(**fields: Any) -> None:
    """
    Add fields to the sync context of the current delivery.

    None values are skipped so callers can pass optional ids as-is.

    Raises:
        ValueError: If a field is not one of SYNC_CONTEXT_KEYS
    """
    unknown = set(fields) - set(SYNC_CONTEXT_KEYS)
    if unknown:
        raise ValueError(f"Unknown sync context fields: {sorted(unknown)}")

    context = dict(_sync_context.get())
    context.update({key: value for key, value in fields.items() if value is not None})
    _sync_context.set(context)


def get_sync_context() -> Dict[str, Any]:
    return dict(_sync_context.get())


def clear_sync_context() -> None:
    _sync_context.set({})


class SyncContextFilter(logging.Filter):
    """Copies the current sync context onto each record as ``record.sync``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.sync = get_sync_context()
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for Cloud Logging and similar collectors."""

    def __init__(self, service_name: str = "skool-member-sync"):
        super().__init__()
        self.service_name = service_name
        self.environment = os.environ.get("ENVIRONMENT", "development")

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, timezone.utc)
        entry: Dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "environment": self.environment,
        }

        sync = getattr(record, "sync", None)
        if sync:
            entry["sync"] = sync

        if record.exc_info and record.exc_info[0]:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(entry, default=str)


class PlainFormatter(logging.Formatter):
    """Development format: the usual one-liner with the sync context appended."""

    def __init__(self):
        super().__init__("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        sync = getattr(record, "sync", None)
        if not sync:
            return line
        pairs = " ".join(f"{key}={sync[key]}" for key in SYNC_CONTEXT_KEYS if key in sync)
        return f"{line} [{pairs}]"


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    service_name: str = "skool-member-sync"
) -> None:
    """
    Configure the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        json_format: JSON lines (production) instead of plain text
        service_name: Service name stamped on JSON records
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(JSONFormatter(service_name=service_name) if json_format else PlainFormatter())
    handler.addFilter(SyncContextFilter())
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
