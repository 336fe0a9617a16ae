"""
Maintrack - Logging
Plain text in development, one JSON object per line in production.

Every record carries the request context (request id, user id, partition
year) through ``ContextFilter``. The logger helpers attach their
structured fields under ``record.event`` so the JSON formatter can emit
them without guessing which record attributes are extras.
"""

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

from app.core.config import settings


_request_id: ContextVar[str] = ContextVar("request_id", default="")
_user_id: ContextVar[str] = ContextVar("user_id", default="")
_partition_year: ContextVar[str] = ContextVar("partition_year", default="")

CONTEXT_FIELDS = ("request_id", "user_id", "partition_year")


def set_request_id(request_id: str) -> None:
    _request_id.set(request_id)


def set_user_id(user_id: str) -> None:
    _user_id.set(user_id)


def set_partition_year(year: str) -> None:
    _partition_year.set(year)


def clear_context() -> None:
    for var in (_request_id, _user_id, _partition_year):
        var.set("")


def current_context() -> Dict[str, str]:
    """Non-empty context values of the running request"""
    values = {
        "request_id": _request_id.get(),
        "user_id": _user_id.get(),
        "partition_year": _partition_year.get(),
    }
    return {key: value for key, value in values.items() if value}


def new_request_id() -> str:
    return uuid.uuid4().hex[:12]


class ContextFilter(logging.Filter):
    """Copies the request context onto each record ('-' when unset)"""

    def filter(self, record: logging.LogRecord) -> bool:
        context = current_context()
        for field in CONTEXT_FIELDS:
            setattr(record, field, context.get(field, "-"))
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}:{record.lineno}",
        }
        entry.update({
            field: getattr(record, field)
            for field in CONTEXT_FIELDS
            if getattr(record, field, "-") != "-"
        })
        event = getattr(record, "event", None)
        if event:
            entry["event"] = event
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


class MaintrackLogger(logging.Logger):
    """Logger with one helper per kind of event the service emits"""

    def _event(self, level: int, message: str, kind: str, exc_info: bool = False, **fields) -> None:
        self.log(level, message, exc_info=exc_info, extra={"event": {"kind": kind, **fields}})

    def log_request(self, method: str, path: str, status_code: int,
                    duration_ms: float, slow_ms: float = 1000) -> None:
        """One line per finished request; 5xx are errors, 4xx and slow requests warnings"""
        if status_code >= 500:
            level = logging.ERROR
        elif status_code >= 400 or duration_ms > slow_ms:
            level = logging.WARNING
        else:
            level = logging.INFO
        self._event(
            level,
            f"{method} {path} -> {status_code} in {duration_ms:.1f}ms",
            "http",
            method=method, path=path, status=status_code,
            duration_ms=round(duration_ms, 2), slow=duration_ms > slow_ms,
        )

    def log_storage_event(self, operation: str, year: int, dates: int = 0,
                          items: int = 0, duration_ms: float = 0.0) -> None:
        self._event(
            logging.DEBUG,
            f"partition {year} {operation}: {items} item(s) over {dates} date(s)",
            "storage",
            operation=operation, year=year, dates=dates, items=items,
            duration_ms=round(duration_ms, 2),
        )

    def log_auth_event(self, event: str, success: bool, username: Optional[str] = None,
                       reason: Optional[str] = None, **fields) -> None:
        outcome = "ok" if success else f"rejected ({reason or 'no reason'})"
        self._event(
            logging.INFO if success else logging.WARNING,
            f"auth {event} for {username or 'unknown user'}: {outcome}",
            "auth",
            action=event, success=success, username=username, reason=reason, **fields,
        )

    def log_error_with_context(self, error: Exception, context: Optional[str] = None) -> None:
        self._event(
            logging.ERROR,
            f"{context or 'unhandled'}: {type(error).__name__}: {error}",
            "error",
            exc_info=True,
            error_type=type(error).__name__, context=context,
        )


def _build_handlers(formatter: logging.Formatter) -> List[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.INFO)
    handlers: List[logging.Handler] = [console]

    if settings.LOG_FILE:
        log_file = Path(settings.LOG_FILE)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=5, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    context_filter = ContextFilter()
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)
    return handlers


def setup_logging() -> MaintrackLogger:
    logging.setLoggerClass(MaintrackLogger)
    log = logging.getLogger("maintrack")
    log.__class__ = MaintrackLogger
    log.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    if settings.ENVIRONMENT == "production":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)-7s [%(request_id)s|%(user_id)s|%(partition_year)s] %(message)s"
        )

    log.handlers.clear()
    for handler in _build_handlers(formatter):
        log.addHandler(handler)

    for noisy in ("httpx", "httpcore", "aiosqlite", "sqlalchemy.engine", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return log


logger: MaintrackLogger = setup_logging()
