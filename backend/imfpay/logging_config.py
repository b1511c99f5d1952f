"""
Logging Setup — dictConfig with secret masking.
Console always; rotating server.log under LOG_DIR when it is writable.
"""
from __future__ import annotations

import json
import logging
import logging.config
import os
import re
from typing import Any, Dict

from imfpay.config import Settings, get_settings


# ─── Secret Masking ─────────────────────────────────────────────────
_SENDGRID_KEY_RE = re.compile(r"SG\.[A-Za-z0-9_-]{8,}\.[A-Za-z0-9_-]{8,}")
_BEARER_RE = re.compile(r"(Authorization\s*:\s*Bearer\s+)([A-Za-z0-9._-]+)", re.IGNORECASE)
_PASSWORD_KV_RE = re.compile(r"((?:password|pass|api_key)\"?\s*[:=]\s*\"?)([^\s\",]+)", re.IGNORECASE)

_SECRET_KEYS = {"password", "smtp_password", "api_key", "sendgrid_api_key", "authorization"}


def _sanitize_str(s: str) -> str:
    if not isinstance(s, str) or not s:
        return s
    s = _SENDGRID_KEY_RE.sub("SG.[REDACTED]", s)
    s = _BEARER_RE.sub(lambda m: m.group(1) + "[REDACTED]", s)
    s = _PASSWORD_KV_RE.sub(lambda m: m.group(1) + "[REDACTED]", s)
    return s


def _sanitize_obj(obj: Any) -> Any:
    if isinstance(obj, dict):
        out: Dict[str, Any] = {}
        for k, v in obj.items():
            if str(k).lower() in _SECRET_KEYS:
                out[k] = "[REDACTED]"
            else:
                out[k] = _sanitize_obj(v)
        return out
    if isinstance(obj, (list, tuple)):
        return type(obj)(_sanitize_obj(v) for v in obj)
    if isinstance(obj, str):
        return _sanitize_str(obj)
    return obj


class SensitiveDataFilter(logging.Filter):
    """Masks credentials in the message, its args and the `extra` payload."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = _sanitize_str(record.msg)
        if record.args:
            if isinstance(record.args, tuple):
                record.args = tuple(_sanitize_obj(a) for a in record.args)
            elif isinstance(record.args, dict):
                record.args = _sanitize_obj(record.args)
        if isinstance(getattr(record, "extra", None), dict):
            record.extra = _sanitize_obj(record.extra)
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "level": record.levelname,
            "time": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if isinstance(getattr(record, "extra", None), dict):
            payload.update(record.extra)
        return json.dumps(_sanitize_obj(payload), ensure_ascii=False, default=str)


def _file_logging_possible(log_file: str) -> bool:
    try:
        os.makedirs(os.path.dirname(log_file), exist_ok=True)
        with open(log_file, "a", encoding="utf-8"):
            pass
    except OSError:
        return False
    return True


def setup_logging(settings: Settings | None = None) -> None:
    """Configure root logging from settings (LOG_LEVEL, LOG_FORMAT, LOG_DIR, LOG_TO_FILE)."""
    settings = settings or get_settings()
    log_level = settings.LOG_LEVEL.upper()
    formatter = "json" if settings.LOG_FORMAT.lower() == "json" else "plain"
    log_file = os.path.join(settings.LOG_DIR, "server.log")
    log_to_file = settings.LOG_TO_FILE and _file_logging_possible(log_file)

    handlers: Dict[str, Dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": log_level,
            "stream": "ext://sys.stdout",
            "formatter": formatter,
            "filters": ["sensitive"],
        }
    }
    if log_to_file:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": log_level,
            "filename": log_file,
            "maxBytes": 5 * 1024 * 1024,
            "backupCount": 3,
            "encoding": "utf-8",
            "delay": True,
            "formatter": formatter,
            "filters": ["sensitive"],
        }

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"sensitive": {"()": SensitiveDataFilter}},
        "formatters": {
            "json": {"()": JsonFormatter},
            "plain": {"format": "%(asctime)s %(levelname)s [%(name)s] %(message)s"},
        },
        "handlers": handlers,
        "root": {"level": log_level, "handlers": list(handlers.keys())},
        "loggers": {
            "httpx": {"level": "WARNING"},
            "sqlalchemy.engine": {"level": "INFO" if settings.DEBUG else "WARNING"},
        },
    })

    logging.getLogger(__name__).info(
        "logging configured",
        extra={"extra": {"level": log_level, "format": formatter, "file": log_file if log_to_file else None}},
    )
