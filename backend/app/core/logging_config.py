"""
Campus Gate Pass - Logging
Plain text in development, one JSON object per line in production.
Every record carries the request, user and gate pass ids of the current task.
"""

import logging
import sys
import json
import traceback
import uuid
from datetime import datetime, timezone
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional
from contextvars import ContextVar

from app.core.config import settings


_CONTEXT: Dict[str, ContextVar] = {
    name: ContextVar(name, default='') for name in ('request_id', 'user_id', 'gate_pass_id')
}


def set_request_id(request_id: str) -> None:
    _CONTEXT['request_id'].set(request_id)


def set_user_id(user_id: str) -> None:
    _CONTEXT['user_id'].set(user_id)


def set_gate_pass_id(gate_pass_id: str) -> None:
    _CONTEXT['gate_pass_id'].set(gate_pass_id)


def current_context() -> Dict[str, str]:
    """Non-empty tracing ids bound to the running task"""
    return {name: var.get() for name, var in _CONTEXT.items() if var.get()}


def generate_request_id() -> str:
    return uuid.uuid4().hex[:8]


# Attributes every LogRecord has; anything else came in through `extra`
_RECORD_ATTRS = set(vars(logging.makeLogRecord({}))) | {'message', 'asctime', *_CONTEXT}


class JSONFormatter(logging.Formatter):
    """Structured records for log shippers"""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
            **current_context(),
        }
        if record.exc_info and record.exc_info[0]:
            exc_type, exc, tb = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc),
                "traceback": traceback.format_exception(exc_type, exc, tb),
            }
        entry.update(
            (key, value) for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith('_')
        )
        return json.dumps(entry, default=str)


class ContextualFormatter(logging.Formatter):
    """Text formatter exposing %(request_id)s, %(user_id)s and %(gate_pass_id)s"""

    def format(self, record: logging.LogRecord) -> str:
        context = current_context()
        for name in _CONTEXT:
            setattr(record, name, context.get(name, '-'))
        return super().format(record)


class CampusLogger(logging.Logger):
    """Logger with one helper per event the service emits"""

    def log_request(self, method: str, path: str, status_code: int,
                    duration_ms: float, **kwargs) -> None:
        self.info(
            f"HTTP {method} {path} - {status_code} ({duration_ms:.2f}ms)",
            extra={"event_type": "http_request", "http_method": method, "http_path": path,
                   "http_status": status_code, "duration_ms": duration_ms, **kwargs},
        )

    def log_transition(self, gate_pass_id: str, from_status: str, to_status: str,
                       actor_id: str, stage: str, **kwargs) -> None:
        self.info(
            f"GatePass {gate_pass_id}: {from_status} -> {to_status} by {stage} {actor_id}",
            extra={"event_type": "gate_pass_transition", "from_status": from_status,
                   "to_status": to_status, "actor_id": actor_id, "stage": stage, **kwargs},
        )

    def log_notification(self, channel: str, recipient: str, success: bool,
                         gate_pass_id: Optional[str] = None,
                         reason: Optional[str] = None, **kwargs) -> None:
        message = f"Notify {channel} -> {recipient}: {'sent' if success else 'failed'}"
        if gate_pass_id:
            message += f" (gate pass {gate_pass_id})"
        if reason:
            message += f" - {reason}"
        self.log(
            logging.INFO if success else logging.WARNING,
            message,
            extra={"event_type": "notification", "channel": channel, "recipient": recipient,
                   "notify_success": success, "failure_reason": reason, **kwargs},
        )

    def log_error_with_context(self, error: Exception, context: Optional[str] = None,
                               **kwargs) -> None:
        self.error(
            f"Error in {context}: {type(error).__name__}: {error}",
            exc_info=error,
            extra={"event_type": "error", "error_type": type(error).__name__,
                   "error_message": str(error), "error_context": context, **kwargs},
        )


_TEXT_FORMAT = (
    "%(asctime)s | %(levelname)-8s | [%(request_id)s] [%(user_id)s] [%(gate_pass_id)s] | "
    "%(funcName)s:%(lineno)d | %(message)s"
)

_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosqlite", "twilio.http_client")


def setup_logging() -> CampusLogger:
    """Configure the "gatepass" logger for the current ENVIRONMENT"""
    logging.setLoggerClass(CampusLogger)
    logger = logging.getLogger("gatepass")
    logger.__class__ = CampusLogger
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    logger.handlers.clear()

    json_logging = settings.ENVIRONMENT == "production"
    if json_logging:
        console_formatter = file_formatter = JSONFormatter()
    else:
        console_formatter = ContextualFormatter("%(levelname)-8s | %(message)s")
        file_formatter = ContextualFormatter(_TEXT_FORMAT)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.INFO)
    console.setFormatter(console_formatter)
    logger.addHandler(console)

    if settings.LOG_FILE:
        log_file = Path(settings.LOG_FILE)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        rotating = RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024,
                                       backupCount=10 if json_logging else 5)
        rotating.setLevel(logging.DEBUG)
        rotating.setFormatter(file_formatter)
        logger.addHandler(rotating)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info("Logging initialized", extra={
        "environment": settings.ENVIRONMENT,
        "log_level": settings.LOG_LEVEL,
        "json_logging": json_logging,
    })
    return logger


logger: CampusLogger = setup_logging()


__all__ = [
    'logger',
    'set_request_id',
    'set_user_id',
    'set_gate_pass_id',
    'current_context',
    'generate_request_id',
    'CampusLogger',
]
