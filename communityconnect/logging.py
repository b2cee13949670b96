"""Logging setup using Loguru.

Every log line carries the context of the service call that produced it:

- ``user_id``: the signed-in user, set when an ``AppContext`` is built
- ``operation``: load_feed, submit_post, request_help or load_profile
- ``post_id``: the post a request or submission is about

Notices shown to the user are logged with a ``notice`` field holding their
level, so a JSON log stream records exactly what the user was told.

Example:
    >>> from communityconnect.logging import log_context, logger
    >>> with log_context(operation="request_help", post_id="3f2a..."):
    ...     logger.info("Sending request")
    >>> # {"message": "Sending request", "operation": "request_help", "post_id": "3f2a...", ...}
"""

import json
import sys
import traceback
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any

from loguru import logger as loguru_logger

from communityconnect.config import settings

CONTEXT_FIELDS = ("user_id", "operation", "post_id")

_context: dict[str, ContextVar[str | None]] = {
    name: ContextVar(name, default=None) for name in CONTEXT_FIELDS
}

# Keys the patcher adds to ``extra`` for the sinks; never part of the payload
_SINK_KEYS = frozenset({"context", "serialized"})


def current_log_context() -> dict[str, str]:
    """Context fields that are currently set."""
    values = {name: var.get() for name, var in _context.items()}
    return {name: value for name, value in values.items() if value is not None}


def set_log_context(
    user_id: str | None = None,
    operation: str | None = None,
    post_id: str | None = None,
) -> None:
    """Set context fields for the rest of the current async task."""
    for name, value in (("user_id", user_id), ("operation", operation), ("post_id", post_id)):
        if value is not None:
            _context[name].set(value)


@contextmanager
def log_context(operation: str, post_id: str | None = None) -> Iterator[None]:
    """Scope ``operation`` (and ``post_id``) to a block, restoring the outer values."""
    tokens = [_context["operation"].set(operation)]
    if post_id is not None:
        tokens.append(_context["post_id"].set(post_id))
    try:
        yield
    finally:
        for token in reversed(tokens):
            token.var.reset(token)


def serialize(record: dict[str, Any]) -> str:
    """Serialize a loguru record to one JSON line.

    Context fields and anything bound with ``logger.bind()`` (``notice``,
    ``post_id``) become top-level keys.
    """
    payload = {
        "time": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "module": record["module"],
        "function": record["function"],
        "line": record["line"],
    }
    payload.update(current_log_context())
    payload.update(
        {key: value for key, value in record["extra"].items() if key not in _SINK_KEYS}
    )

    if exc := record["exception"]:
        payload["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value),
            "traceback": traceback.format_exception(exc.type, exc.value, exc.traceback),
        }

    return json.dumps(payload, default=str)


def patching(record: dict[str, Any]) -> None:
    """Attach the console context summary and the JSON line to ``extra``."""
    extra = record["extra"]
    fields = {**current_log_context(), **extra}
    extra["context"] = " ".join(
        f"{name}={fields[name]}" for name in (*CONTEXT_FIELDS, "notice") if fields.get(name)
    )
    extra["serialized"] = serialize(record)


def console_format(record: dict[str, Any]) -> str:
    fmt = "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    if record["extra"].get("context"):
        fmt += "<cyan>{extra[context]}</cyan> | "
    return fmt + "<level>{message}</level>\n{exception}"


def json_format(record: dict[str, Any]) -> str:
    return "{extra[serialized]}\n"


def setup_logging(
    level: str = "INFO",
    json_logs: bool = False,
    log_file: Path | None = None,
    colorize: bool = True,
) -> Any:
    """Replace Loguru's handlers with a stderr sink and an optional file sink.

    Args:
        level: Minimum log level
        json_logs: One JSON object per line instead of the colored console format
        log_file: Optional file path; rotated at 10 MB and kept for 14 days
        colorize: Colored console output

    Returns:
        Logger patched with the context fields
    """
    loguru_logger.remove()
    patched_logger = loguru_logger.patch(patching)

    patched_logger.add(
        sys.stderr,
        level=level,
        format=json_format if json_logs else console_format,
        colorize=colorize and not json_logs,
    )

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        patched_logger.add(
            log_file,
            level=level,
            format=json_format if json_logs else "{time} | {level} | {extra[context]} | {message}",
            rotation="10 MB",
            retention="14 days",
            compression="zip",
            enqueue=True,
        )

    return patched_logger


logger = setup_logging(
    level=settings.log_level,
    json_logs=settings.log_json,
    log_file=settings.log_file,
    colorize=not settings.log_json,
)


__all__ = [
    "CONTEXT_FIELDS",
    "current_log_context",
    "log_context",
    "logger",
    "set_log_context",
    "setup_logging",
]
