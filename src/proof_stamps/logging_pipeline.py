"""JSON log output for the issuing service and command-line tools."""

from __future__ import annotations

import json
import logging
import logging.handlers
from datetime import datetime, timezone
from queue import Full, Queue
from typing import IO, Iterable
from uuid import uuid4

from proof_stamps.models import format_timestamp

__all__ = [
    "BoundedQueueHandler",
    "JsonFormatter",
    "configure_structured_logging",
    "shutdown_listeners",
]

LOGGER = logging.getLogger(__name__)

# Attributes every LogRecord carries; anything else arrived through ``extra``
_RECORD_ATTRIBUTES: frozenset[str] = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}

# Never written to logs in clear
_REDACTED_KEYS: frozenset[str] = frozenset(
    {"signature", "signing_key", "private_key", "proofs", "proofValue"}
)


def _redact(value: object) -> object:
    if isinstance(value, dict):
        return {
            key: "***" if key in _REDACTED_KEYS else _redact(item)
            for key, item in value.items()
        }
    return value


class JsonFormatter(logging.Formatter):
    """Render each record as one JSON object carrying its ``extra`` fields."""

    def __init__(self, *, default_request_id: str | None = None) -> None:
        super().__init__()
        self._default_request_id = default_request_id

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - inherited
        context: dict[str, object] = {}
        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRIBUTES or key == "request_id":
                continue
            context[key] = "***" if key in _REDACTED_KEYS else _redact(value)

        payload: dict[str, object] = {
            "timestamp": format_timestamp(
                datetime.fromtimestamp(record.created, timezone.utc)
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None)
            or self._default_request_id,
            "context": context,
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        elif record.exc_text:
            payload["exception"] = record.exc_text

        return json.dumps(payload, default=str, ensure_ascii=False)


class BoundedQueueHandler(logging.handlers.QueueHandler):
    """Queue handler that counts and drops records once the queue is full."""

    def __init__(self, queue: Queue[logging.LogRecord]) -> None:
        super().__init__(queue)
        self.dropped = 0

    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except Full:
            self.dropped += 1


def configure_structured_logging(
    logger: logging.Logger,
    *,
    request_id: str | None = None,
    level: int = logging.INFO,
    stream: IO[str] | None = None,
    max_queue: int = 1024,
) -> logging.handlers.QueueListener:
    """Attach a queue-backed JSON handler to ``logger``.

    Args:
        logger: Logger to configure, usually the ``proof_stamps`` root.
        request_id: Identifier stamped on records that do not set their own
            ``request_id``; a random one is generated when omitted.
        level: Logging verbosity level.
        stream: Destination stream, ``sys.stderr`` by default.
        max_queue: Records buffered before new ones are dropped.

    Returns:
        The started listener; stop it with :func:`shutdown_listeners`.
    """

    logger.setLevel(level)

    record_queue: Queue[logging.LogRecord] = Queue(maxsize=max_queue)
    logger.addHandler(BoundedQueueHandler(record_queue))

    stream_handler = logging.StreamHandler(stream)
    stream_handler.setFormatter(
        JsonFormatter(default_request_id=request_id or uuid4().hex)
    )

    listener = logging.handlers.QueueListener(record_queue, stream_handler)
    listener.start()
    return listener


def shutdown_listeners(listeners: Iterable[logging.handlers.QueueListener]) -> None:
    """Flush and stop ``listeners``, logging any that fail to stop."""

    for listener in listeners:
        try:
            listener.stop()
        except Exception as exc:  # pragma: no cover - defensive logging cleanup
            LOGGER.warning("Failed to stop logging listener", exc_info=exc)
