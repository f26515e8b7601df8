import json
import logging
import os
from typing import Optional

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}


def _make_console_formatter() -> logging.Formatter:
    return logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


class _JsonFormatter(logging.Formatter):
    """One JSON object per line; tracebacks folded into "exc"."""

    def format(self, record: logging.LogRecord) -> str:
        doc = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            doc["exc"] = self.formatException(record.exc_info)
        return json.dumps(doc, ensure_ascii=False)


def setup_logging(
    level: Optional[str] = None,
    fmt: Optional[str] = None,
) -> None:
    """
    Initialize root logging once.
    Env overrides:
      LOG_LEVEL = INFO|DEBUG|...
      LOG_FORMAT = text|json
    Falls back to Settings when neither argument nor env is set.
    """
    from checkout_api.app.core.config import settings

    level = (level or os.getenv("LOG_LEVEL") or settings.log_level or "INFO").upper()
    fmt = (fmt or os.getenv("LOG_FORMAT") or settings.log_format or "text").lower()

    log_level = _LEVELS.get(level, logging.INFO)
    formatter = _JsonFormatter() if fmt == "json" else _make_console_formatter()

    root = logging.getLogger()
    # uvicorn installs its own handlers; replace them so output stays uniform
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    root.addHandler(handler)
    root.setLevel(log_level)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        lg = logging.getLogger(name)
        lg.handlers = [handler]
        lg.setLevel(log_level)

    # stripe's client logs every request at INFO
    logging.getLogger("stripe").setLevel(max(log_level, logging.WARNING))
