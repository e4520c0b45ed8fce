"""
Centralized logging configuration for the ExpertDesk backend.

Console records are colored and human-readable; file records are JSON
lines written through a rotating handler. Structured data travels in
`extra={"extra_fields": {...}}`, and the conversation context bound with
bind_log_context() (current agent, session) is merged into every record
logged from that context.
"""

import json
import logging
import logging.handlers
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

CONSOLE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Loggers that are too chatty at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")

SENSITIVE_KEYS = ('token', 'secret', 'authorization', 'api_key', 'api-key', 'x-goog-api-key')

_log_context: ContextVar[Dict[str, Any]] = ContextVar("expertdesk_log_context", default={})


def bind_log_context(**fields: Any) -> None:
    """Attach fields to every record logged from the current task."""
    _log_context.set({**_log_context.get(), **fields})


class ConversationContextFilter(logging.Filter):
    """Merges the bound conversation context into record.extra_fields."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = _log_context.get()
        if context:
            record.extra_fields = {**context, **getattr(record, "extra_fields", {})}
        return True


class ColoredFormatter(logging.Formatter):
    """Colors the level name for terminal output."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        # Work on a copy; other handlers share the record
        colored = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname, self.RESET)
        colored.levelname = f"{color}{record.levelname:8s}{self.RESET}"
        return super().format(colored)


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with extra_fields flattened in."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }
        entry.update(getattr(record, "extra_fields", {}))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(ColoredFormatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def _file_handler(config: Any, level: int) -> logging.Handler:
    log_path = Path(config.log_file_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # 10MB per file, 5 backups
    handler = logging.handlers.RotatingFileHandler(
        filename=log_path,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding='utf-8'
    )
    handler.setLevel(level)
    if config.log_json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(config: Any) -> None:
    """
    Configure the root logger from Settings.

    Args:
        config: Settings object with the log_* keys
    """
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)

    handlers = []
    if config.log_console_enabled:
        handlers.append(_console_handler(level))
    if config.log_file_enabled:
        handlers.append(_file_handler(config, level))

    context_filter = ConversationContextFilter()
    for handler in handlers:
        handler.addFilter(context_filter)
        root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.info(
        f"Logging initialized: level={config.log_level.upper()}, "
        f"console={config.log_console_enabled}, file={config.log_file_enabled}"
    )


def filter_sensitive_data(data: Any, sensitive_keys: Optional[tuple] = None) -> Any:
    """
    Mask credentials in data that is about to be logged.

    Returns:
        A copy with matching keys replaced by "***FILTERED***"
    """
    keys = sensitive_keys or SENSITIVE_KEYS
    if isinstance(data, dict):
        return {
            key: "***FILTERED***" if any(k in str(key).lower() for k in keys)
            else filter_sensitive_data(value, keys)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [filter_sensitive_data(item, keys) for item in data]
    return data


def truncate_large_data(data: str, max_length: int = 5000) -> str:
    """Cut long payloads (base64 attachments, long replies) down to max_length."""
    if len(data) <= max_length:
        return data
    return data[:max_length] + f"... (truncated, total length: {len(data)})"
