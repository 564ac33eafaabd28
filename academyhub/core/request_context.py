"""Per-request context used to correlate log lines.

Holds the request ID assigned by ``RequestLoggingMiddleware`` and the ID of
the authenticated user once ``get_current_user`` has resolved it.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar, Token
from uuid import uuid4

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
_actor_id_var: ContextVar[str | None] = ContextVar("actor_id", default=None)


def get_request_id() -> str | None:
    """Get the current request correlation ID (if any)."""

    return _request_id_var.get()


def set_request_id(request_id: str | None) -> Token[str | None]:
    """Set the current request correlation ID and return the reset token."""

    return _request_id_var.set(request_id)


def reset_request_id(token: Token[str | None]) -> None:
    _request_id_var.reset(token)


def new_request_id() -> str:
    """Generate a new correlation ID."""

    return str(uuid4())


def get_actor_id() -> str | None:
    """ID of the authenticated user handling the current request."""

    return _actor_id_var.get()


def set_actor_id(actor_id: object | None) -> None:
    _actor_id_var.set(str(actor_id) if actor_id is not None else None)


@contextmanager
def request_id_context(request_id: str | None):
    """Context manager that sets the correlation ID for the duration."""

    token = set_request_id(request_id)
    actor_token = _actor_id_var.set(None)
    try:
        yield
    finally:
        _actor_id_var.reset(actor_token)
        reset_request_id(token)
