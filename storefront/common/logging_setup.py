import logging
import sys
import json
import re
from typing import Any, Dict, Optional
from logging.handlers import QueueHandler, QueueListener
from queue import Queue
from storefront.config.admin_config import admin_config
from storefront.common.constants import request_id_ctx

ENV = getattr(admin_config, "ENV", "dev").lower()

SENSITIVE_PATTERNS = [
    r"password", r"secret", r"token", r"authorization",
    r"api_key", r"apikey", r"access_token", r"refresh_token",
    r"signature", r"otp", r"code_hash", r"password_hash",
]

_RESERVED_ATTRS = frozenset((
    "name", "msg", "args", "levelname", "levelno", "pathname", "filename",
    "module", "exc_info", "exc_text", "stack_info", "lineno", "funcName",
    "created", "msecs", "relativeCreated", "thread", "threadName", "processName",
    "process", "taskName", "message", "asctime",
))


def sanitize_message_text(msg: str) -> str:
    """Sanitize sensitive patterns inside a text message (best-effort)."""
    out = msg
    for p in SENSITIVE_PATTERNS:
        # "password": "abc"  and  password=abc
        out = re.sub(rf'("{p}"\s*:\s*")[^"]+(")', r'\1[REDACTED]\2', out, flags=re.IGNORECASE)
        out = re.sub(rf'({p}\s*[=:]\s*)[\w\-\./]+', r'\1[REDACTED]', out, flags=re.IGNORECASE)
    return out


def shorten_public_id(value: Any) -> str:
    val = str(value)
    if len(val) > 12:
        return val[:8] + "..." + val[-4:]
    return val[:8] + "..."


_SHORTENED_IDS = ("user_public_id", "public_id", "order_public_id")

DEV_FORMAT = "%(asctime)s [%(levelname)8s] %(name)s:%(funcName)s:%(lineno)d | %(message)s"

# third party loggers kept quiet outside dev
_QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "httpx": logging.WARNING,
}


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Extras passed through ``extra={...}``, with secrets redacted."""
    fields: Dict[str, Any] = {}
    for key, value in vars(record).items():
        if key in _RESERVED_ATTRS or key.startswith("_"):
            continue
        if any(re.fullmatch(p, key, flags=re.IGNORECASE) for p in SENSITIVE_PATTERNS):
            value = "[REDACTED]"
        elif key in _SHORTENED_IDS and value is not None and ENV != "dev":
            value = shorten_public_id(value)
        fields[key] = value
    return fields


class JSONFormatter(logging.Formatter):
    """One JSON object per line: record basics, request id, then extras."""

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if ENV != "dev":
            message = sanitize_message_text(message)

        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": message,
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
            "env": ENV,
            "service": admin_config.SERVICE_NAME,
        }
        request_id = request_id_ctx.get()
        if request_id:
            payload["request_id"] = request_id

        payload.update(_extra_fields(record))

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class SecurityFilter(logging.Filter):
    """Rewrites the message text with secrets masked before any formatter sees it."""

    def filter(self, record: logging.LogRecord) -> bool:
        if ENV == "dev":
            return True
        try:
            rendered = record.getMessage()
        except (TypeError, ValueError):
            return True
        record.msg, record.args = sanitize_message_text(rendered), ()
        return True


_queue_listener: Optional[QueueListener] = None


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    if ENV == "dev":
        handler.setFormatter(logging.Formatter(DEV_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    else:
        handler.addFilter(SecurityFilter())
        handler.setFormatter(JSONFormatter())
    return handler


def setup_logging():
    """Route every record through a queue so request handlers never wait on stdout."""
    global _queue_listener
    shutdown_logging()

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    records: Queue = Queue(-1)
    root.addHandler(QueueHandler(records))
    root.setLevel(logging.INFO if ENV in ("prod", "staging") else logging.DEBUG)

    _queue_listener = QueueListener(records, _console_handler(), respect_handler_level=True)
    _queue_listener.start()

    if ENV != "dev":
        for name, level in _QUIET_LOGGERS.items():
            logging.getLogger(name).setLevel(level)

    return logging.getLogger("storefront.app")


def shutdown_logging():
    global _queue_listener
    if _queue_listener is not None:
        _queue_listener.stop()
        _queue_listener = None


class ContextLogger:
    def __init__(self, name: str):
        self._logger = logging.getLogger(name)

    @property
    def name(self) -> str:
        return self._logger.name

    def _with_ctx(self, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        extra = dict(extra or {})
        rid = request_id_ctx.get()
        if rid:
            extra.setdefault("request_id", rid)
        return extra

    def _log(self, level: int, msg: str, *args, **kwargs):
        extra = kwargs.pop("extra", None)
        kwargs["extra"] = self._with_ctx(extra)
        kwargs.setdefault("stacklevel", 3)
        self._logger.log(level, msg, *args, **kwargs)

    def debug(self, msg: str, *args, **kwargs):
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self._log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        kwargs.setdefault("exc_info", True)
        self._log(logging.ERROR, msg, *args, **kwargs)


def get_logger(name: str = "storefront.app") -> ContextLogger:
    return ContextLogger(name)
