"""Real-time relay between persisted writes and connected websocket clients.

Connections are grouped in rooms. Every authenticated connection joins its
own ``user-<id>`` room; clients may additionally join ``channel-<id>`` rooms.
Publishing is fire-and-forget: there is no acknowledgement, no replay buffer
and no ordering guarantee across connections. A client that was offline
must re-fetch state over HTTP when it reconnects.

One relay instance lives on ``app.state.relay`` and is handed to the code
that publishes through the ``get_relay`` dependency.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any, Protocol

from fastapi import Request

from academyhub.core.structured_logging import log_json

logger = logging.getLogger(__name__)


class RelayConnection(Protocol):
    async def send_json(self, data: Any) -> None: ...


def user_room(user_id: object) -> str:
    return f"user-{user_id}"


def channel_room(channel_id: object) -> str:
    return f"channel-{channel_id}"


class RealtimeRelay:
    """Room registry and broadcaster for websocket connections."""

    def __init__(self) -> None:
        self._rooms: dict[str, set[RelayConnection]] = defaultdict(set)
        self._memberships: dict[RelayConnection, set[str]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def connect(self, user_id: object, connection: RelayConnection) -> str:
        """Register an authenticated connection in its user room."""
        room = user_room(user_id)
        await self.join(room, connection)
        return room

    async def join(self, room: str, connection: RelayConnection) -> None:
        async with self._lock:
            self._rooms[room].add(connection)
            self._memberships[connection].add(room)

    async def leave(self, room: str, connection: RelayConnection) -> None:
        async with self._lock:
            self._discard(room, connection)

    async def disconnect(self, connection: RelayConnection) -> None:
        """Remove a connection from every room it joined."""
        async with self._lock:
            for room in list(self._memberships.get(connection, ())):
                self._discard(room, connection)
            self._memberships.pop(connection, None)

    def _discard(self, room: str, connection: RelayConnection) -> None:
        members = self._rooms.get(room)
        if members is not None:
            members.discard(connection)
            if not members:
                del self._rooms[room]
        rooms = self._memberships.get(connection)
        if rooms is not None:
            rooms.discard(room)

    def members(self, room: str) -> int:
        return len(self._rooms.get(room, ()))

    async def publish(self, room: str, event: str, data: Any) -> int:
        """Send ``{"event", "data"}`` to every connection in ``room``.

        Connections that fail to receive are dropped. Returns the number of
        connections the message was delivered to.
        """
        async with self._lock:
            targets = list(self._rooms.get(room, ()))

        delivered = 0
        message = {"event": event, "data": data}
        for connection in targets:
            try:
                await connection.send_json(message)
                delivered += 1
            except Exception as exc:
                log_json(
                    logger,
                    logging.WARNING,
                    "relay_send_failed",
                    room=room,
                    relay_event=event,
                    error=str(exc),
                )
                await self.disconnect(connection)

        return delivered


def get_relay(request: Request) -> RealtimeRelay:
    """FastAPI dependency returning the application's relay."""
    return request.app.state.relay
