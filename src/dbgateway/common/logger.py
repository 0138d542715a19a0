import contextvars
import json
import logging
from contextlib import contextmanager
from typing import Any, Dict, Optional, Union

TEXT_FORMAT = "%(asctime)s %(levelname)-7s [%(request_id)s] %(name)s: %(message)s"

# Third-party loggers that are only useful when debugging them.
QUIET_LOGGERS = ("httpx", "httpcore", "snowflake.connector")

# Every attribute a bare LogRecord carries; anything else came in through `extra`.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", logging.NOTSET, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "request_id",
}

_request_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("request_id", default=None)


def current_request_id() -> Optional[str]:
    return _request_id_ctx.get()


@contextmanager
def request_context(request_id: str):
    """Tags every record logged inside the block with `request_id`."""
    token = _request_id_ctx.set(request_id)
    try:
        yield
    finally:
        _request_id_ctx.reset(token)


class RequestContextFilter(logging.Filter):
    """Copies the active request id onto each record, or `default` outside a request."""

    def __init__(self, default: Optional[str] = None):
        super().__init__()
        self.default = default

    def filter(self, record):
        request_id = current_request_id()
        record.request_id = request_id if request_id is not None else self.default
        return True


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


class JsonFormatter(logging.Formatter):
    """One JSON object per record: level, logger, message, request id and extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        request_id = getattr(record, "request_id", None)
        if request_id:
            payload["request_id"] = request_id
        payload.update(_extra_fields(record))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(payload, default=str)


def _build_handler(json_format: bool) -> logging.Handler:
    handler = logging.StreamHandler()
    if json_format:
        handler.addFilter(RequestContextFilter())
        handler.setFormatter(JsonFormatter())
    else:
        handler.addFilter(RequestContextFilter(default="-"))
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    return handler


def configure_logging(level: Union[str, int] = "INFO", json_format: bool = False) -> logging.Handler:
    """Installs a single stream handler on the root logger.

    Args:
        level: Root level name or number.
        json_format: Emit one JSON object per line instead of text.

    Returns:
        The installed handler.
    """
    root = logging.getLogger()
    root.setLevel(level.upper() if isinstance(level, str) else level)
    for existing in list(root.handlers):
        root.removeHandler(existing)

    handler = _build_handler(json_format)
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
