"""Log output for the engine, the CLI and the REST server.

Everything goes through standard library logging. Context travels in
``extra=`` (``enrollment_id``, ``workflow_id``, ``node_id``, ...) and is
rendered either as one JSON object per line (``LOG_FORMAT=json``, the
default) or as ``key=value`` pairs after the message (``LOG_FORMAT=text``).

Logs go to stderr; CLI commands print their results on stdout.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

_STANDARD_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"asctime", "message", "taskName"}

LOG_FORMATS: tuple[str, ...] = ("json", "text")


def extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    """The ``extra=`` values attached to a record, in insertion order."""

    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_RECORD_ATTRS and not key.startswith("_")
    }


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        extra = extra_fields(record)
        if extra:
            payload["extra"] = extra
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class KeyValueFormatter(logging.Formatter):
    """``2025-03-01T09:00:00+00:00 INFO engine.dispatcher: Enrolled workflow_id=wf-1``"""

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        stamp = datetime.fromtimestamp(record.created, tz=UTC).isoformat(timespec="seconds")
        line = f"{stamp} {record.levelname} {record.name}: {record.getMessage()}"
        pairs = " ".join(f"{k}={_scalar(v)}" for k, v in extra_fields(record).items())
        if pairs:
            line = f"{line} {pairs}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def _scalar(value: Any) -> str:
    text = value if isinstance(value, str) else json.dumps(value, default=str)
    return json.dumps(text) if " " in text else text


def configure_logging(level: str, fmt: str = "json") -> None:
    """(Re)configure the root logger. Safe to call more than once."""

    if fmt not in LOG_FORMATS:
        raise ValueError(f"Unknown log format {fmt!r}; expected one of {', '.join(LOG_FORMATS)}")

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(JsonFormatter() if fmt == "json" else KeyValueFormatter())
    root.addHandler(handler)
    root.setLevel(level.upper())

    # Request lines duplicate what the API handlers already log.
    logging.getLogger("uvicorn.access").setLevel(max(root.level, logging.WARNING))
