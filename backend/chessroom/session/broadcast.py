"""Connection registry with fan-out and targeted send."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from chessroom.messaging.protocol import ConnectionProtocol

logger = structlog.get_logger()


class Broadcaster:
    """Track live connections and deliver messages to one or all of them.

    Sends never raise: a connection that fails mid-send is left for its own
    WebSocket disconnect handler to clean up.
    """

    def __init__(self) -> None:
        self._connections: dict[str, ConnectionProtocol] = {}  # connection_id -> connection

    def register(self, connection: ConnectionProtocol) -> None:
        self._connections[connection.connection_id] = connection

    def unregister(self, connection_id: str) -> None:
        self._connections.pop(connection_id, None)

    def get(self, connection_id: str) -> ConnectionProtocol | None:
        return self._connections.get(connection_id)

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self._connections

    @property
    def connection_ids(self) -> list[str]:
        return list(self._connections)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def send(self, connection_id: str | None, message: dict[str, Any]) -> None:
        """Send a message to one connection. Missing or absent connections are skipped."""
        if connection_id is None:
            return
        connection = self._connections.get(connection_id)
        if connection is None:
            return
        with contextlib.suppress(RuntimeError, OSError, ConnectionError):
            await connection.send_message(message)

    async def broadcast(
        self,
        message: dict[str, Any],
        exclude_connection_id: str | None = None,
    ) -> None:
        """Broadcast a message to all connections, skipping one if excluded.

        Snapshot the registry via list() so a disconnect that lands while we
        yield on send_message cannot mutate the dict under iteration.
        """
        for connection in list(self._connections.values()):
            if connection.connection_id != exclude_connection_id:
                with contextlib.suppress(RuntimeError, OSError, ConnectionError):
                    await connection.send_message(message)

    async def close_all(self, code: int = 1001, reason: str = "server_shutdown") -> None:
        for connection in list(self._connections.values()):
            with contextlib.suppress(RuntimeError, OSError, ConnectionError):
                await connection.close(code=code, reason=reason)
        logger.info("closed all connections", reason=reason)
