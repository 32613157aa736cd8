"""Monitor client liveness via application-level heartbeat."""

import asyncio
import contextlib
import time
from collections.abc import Callable

import structlog

from chessroom.messaging.protocol import ConnectionProtocol

HEARTBEAT_CHECK_INTERVAL = 5  # seconds between heartbeat checks
HEARTBEAT_TIMEOUT = 30  # seconds before disconnecting an idle client

logger = structlog.get_logger()

# Returns the connections currently attached to the session.
ConnectionLister = Callable[[], list[ConnectionProtocol]]


class HeartbeatMonitor:
    """Close connections that stop pinging.

    A half-open socket never produces a disconnect event on its own, which
    would leave its seat occupied forever. Closing it here routes the seat
    through the normal disconnect and grace-period handling.
    """

    def __init__(self, timeout: float = HEARTBEAT_TIMEOUT, check_interval: float = HEARTBEAT_CHECK_INTERVAL) -> None:
        self._timeout = timeout
        self._check_interval = check_interval
        self._last_ping: dict[str, float] = {}  # connection_id -> monotonic timestamp
        self._task: asyncio.Task[None] | None = None

    def record_connect(self, connection_id: str) -> None:
        """Record initial ping timestamp for a new connection."""
        self._last_ping[connection_id] = time.monotonic()

    def record_disconnect(self, connection_id: str) -> None:
        """Remove ping tracking for a disconnected connection."""
        self._last_ping.pop(connection_id, None)

    def record_ping(self, connection_id: str) -> None:
        """Update ping timestamp for a tracked connection."""
        if connection_id in self._last_ping:
            self._last_ping[connection_id] = time.monotonic()

    def is_stale(self, connection_id: str, now: float | None = None) -> bool:
        last_ping = self._last_ping.get(connection_id)
        if last_ping is None:
            return False
        now = time.monotonic() if now is None else now
        return now - last_ping > self._timeout

    def start(self, list_connections: ConnectionLister) -> None:
        """Start the background check loop, replacing a running one."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = asyncio.create_task(self._check_loop(list_connections))

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def close_stale(self, connections: list[ConnectionProtocol]) -> int:
        """Close every connection that missed the heartbeat window. Returns how many were closed."""
        now = time.monotonic()
        closed = 0
        for connection in connections:
            if self.is_stale(connection.connection_id, now):
                logger.info("heartbeat timeout, disconnecting", connection_id=connection.connection_id)
                with contextlib.suppress(RuntimeError, OSError, ConnectionError):
                    await connection.close(code=1000, reason="heartbeat_timeout")
                closed += 1
        return closed

    async def _check_loop(self, list_connections: ConnectionLister) -> None:
        while True:
            await asyncio.sleep(self._check_interval)
            await self.close_stale(list_connections())
