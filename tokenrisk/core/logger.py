import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

# Context fields copied from `extra=` into the JSON line when present
CONTEXT_FIELDS = ("unit", "ticker", "phase", "event", "cycle")


class JSONFormatter(logging.Formatter):
    """
    One JSON object per log line.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # logger.warning("no data", extra={"unit": unit, "phase": "HOLDER_ANALYSIS"})
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_record[key] = value

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record, default=str)


def get_logger(name: str, level=logging.INFO) -> logging.Logger:
    """
    Logger with a single stdout JSON handler. Does not propagate, so the
    root handler installed by the app runner does not print lines twice.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
        logger.propagate = False

    return logger


def configure_logging(level=logging.INFO):
    """Route plain `logging.getLogger(...)` loggers (routers, engines) through JSON too."""
    root = logging.getLogger()
    root.setLevel(level)
    if not any(isinstance(h.formatter, JSONFormatter) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        root.addHandler(handler)


def log_event(logger: logging.Logger, event: str, data: Dict[str, Any], level=logging.INFO):
    """
    Structured event: the message is the JSON payload, and `event` is also
    set as a record field so formatters and filters can key on it.
    """
    payload = {"event": event, **data}
    logger.log(level, json.dumps(payload, default=str), extra={"event": event})
