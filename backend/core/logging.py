import json
import logging
from typing import Any, Dict, Optional


# Attributes every LogRecord carries; anything else came in through `extra=`.
_RESERVED_KEYS = set(vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "taskName",
}

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class StructuredFormatter(logging.Formatter):
    """Render logs as JSON with consistent fields."""

    def __init__(self, *, app_env: Optional[str] = None, datefmt: Optional[str] = None) -> None:
        super().__init__(datefmt=datefmt)
        self.app_env = app_env

    def format(self, record: logging.LogRecord) -> str:
        base: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.app_env:
            base["env"] = self.app_env
        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_KEYS and not key.startswith("_")
        }
        event = extras.pop("event", None)
        if event:
            base["event"] = event
        if extras:
            base["extra"] = extras
        if record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(base, default=str)


def init_logging(level: str = "INFO", *, fmt: str = "json", app_env: Optional[str] = None) -> None:
    """Configure root logger; `fmt` selects JSON lines or plain text for local runs."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    handler = logging.StreamHandler()
    if (fmt or "").strip().lower() == "text":
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))
    else:
        handler.setFormatter(StructuredFormatter(app_env=app_env))
    logging.basicConfig(level=log_level, handlers=[handler], force=True)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a module-scoped logger."""
    return logging.getLogger(name if name else __name__)
