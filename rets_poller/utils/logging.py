"""
Logging setup for the RETS poller.

Everything logs through the standard library. The CLI calls
`configure_logging` once; library users keep their own configuration and the
poller's loggers simply propagate.

Two output shapes:
- console: one line per record, with the query context (`query_name`, `url`)
  appended when the record carries it;
- JSON: one object per record with every `extra=` field promoted to a
  top-level key, ready for a log shipper.

Usage:
    from rets_poller.utils.logging import configure_logging, get_logger

    configure_logging(level="INFO", json_logs=False)
    log = get_logger(__name__)
    log.info("Querying RETS", extra={"query_name": "properties"})
"""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import UTC, datetime
from typing import Any, Dict, Iterable, Optional

# Attributes every LogRecord carries; anything else came in through `extra=`.
_RESERVED = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime", "taskName", "extra"}

# Extras worth showing on a console line.
_CONSOLE_CONTEXT = ("query_name", "url", "metric")

# Third-party loggers that are chatty at INFO (one line per job run / request).
NOISY_LOGGERS = ("apscheduler", "httpx", "httpcore")


def _extras(record: logging.LogRecord) -> Dict[str, Any]:
    fields = {key: value for key, value in vars(record).items() if key not in _RESERVED}
    nested = getattr(record, "extra", None)
    if isinstance(nested, dict):
        fields.update(nested)
    return fields


def _json_formatter(record: logging.LogRecord) -> str:
    """Render a log record as one JSON object."""
    payload: Dict[str, Any] = {
        "@timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
        "level": record.levelname,
        "logger": record.name,
        "message": record.getMessage(),
    }
    payload.update(_extras(record))
    if record.exc_info:
        payload["exc_info"] = logging.Formatter().formatException(record.exc_info)
    if record.stack_info:
        payload["stack_info"] = record.stack_info
    return json.dumps(payload, default=str)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        return _json_formatter(record)


class ContextFormatter(logging.Formatter):
    """Plain text lines with `key=value` query context appended."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = _extras(record)
        context = " ".join(f"{key}={extras[key]}" for key in _CONSOLE_CONTEXT if key in extras)
        if not context:
            return line
        # Keep any traceback after the context.
        head, sep, tail = line.partition("\n")
        return f"{head} [{context}]{sep}{tail}"


def configure_logging(
    level: str = "INFO",
    json_logs: bool = False,
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> None:
    """
    Configure root logging for the CLI.

    Parameters
    ----------
    level : str
        Logging level name for the poller's own loggers.
    json_logs : bool
        Emit JSON objects instead of console lines.
    quiet : iterable of str
        Loggers capped at WARNING regardless of `level`.
    """
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "console": {
                    "()": ContextFormatter,
                    "format": "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
                "json": {"()": JsonFormatter},
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "formatter": "json" if json_logs else "console",
                }
            },
            "root": {"handlers": ["stderr"], "level": level.upper()},
            "loggers": {name: {"level": "WARNING"} for name in quiet},
        }
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name)


__all__ = ["ContextFormatter", "JsonFormatter", "configure_logging", "get_logger"]
