"""JSON-line logging helper.

Log records are single JSON objects so any collector can ingest them. The
current request ID and authenticated actor are attached automatically.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from academyhub.core.request_context import get_actor_id, get_request_id


def log_json(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    """Emit a single JSON log line with request and actor correlation."""

    payload: dict[str, Any] = {
        "timestamp": datetime.now(UTC).isoformat(),
        "level": logging.getLevelName(level).lower(),
        "event": event,
    }
    request_id = get_request_id()
    if request_id:
        payload["request_id"] = request_id
    actor_id = get_actor_id()
    if actor_id:
        payload["actor_id"] = actor_id

    payload.update(fields)
    logger.log(level, json.dumps(payload, default=str))


def configure_logging(level: str = "INFO") -> None:
    """Send bare JSON lines to stderr for the ``academyhub`` logger tree."""

    root = logging.getLogger("academyhub")
    if root.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
    root.setLevel(level.upper())
