"""Seat and spectator assignment for arriving connections.

There are two ways into a seat:

- arrival: a new connection whose identity matches a pending reconnect is
  reseated at once; anything else is assigned after a short debounce, which
  gives an explicit reconnect request sent right after connecting the chance
  to land first.
- reconnect request: ``reconnectPlayer {role, oldConnectionId}`` claims a seat
  immediately.

Both paths mark the arrival as reconciled, and the debounced assignment skips
reconciled arrivals, so one connection is never seated twice.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from chessroom.messaging.types import PlayerRoleMessage, SpectatorNoticeMessage, SpectatorRoleMessage
from chessroom.session.models import COLORS, Role

if TYPE_CHECKING:
    from chessroom.messaging.protocol import ConnectionProtocol
    from chessroom.oracle.enums import Color
    from chessroom.session.context import SessionContext
    from chessroom.session.reconciler import DisconnectReconciler

logger = structlog.get_logger()

SPECTATOR_NOTICE = "Both seats are taken. You are watching this game as a spectator."

# Callback invoked when a connection's debounce window closes.
DebounceCallback = Callable[[str], Awaitable[None]]


@dataclass
class Arrival:
    connection_id: str
    display_name: str | None = None
    reconciled: bool = False
    task: asyncio.Task[None] | None = None


class RoleAssigner:
    def __init__(
        self,
        context: SessionContext,
        reconciler: DisconnectReconciler,
        on_debounce_elapsed: DebounceCallback,
    ) -> None:
        self._ctx = context
        self._reconciler = reconciler
        self._on_debounce_elapsed = on_debounce_elapsed
        self._arrivals: dict[str, Arrival] = {}  # connection_id -> Arrival

    async def handle_arrival(self, connection: ConnectionProtocol) -> Role | None:
        """Register a new connection.

        Returns the role when the connection was reseated by identity, or None
        when its assignment was deferred to the debounce window.
        """
        arrival = Arrival(connection_id=connection.connection_id, display_name=connection.display_name)
        self._arrivals[arrival.connection_id] = arrival

        color = self._ctx.state.pending_color_of(arrival.connection_id)
        if color is not None:
            arrival.reconciled = True
            await self._reconnect_seat(color, arrival)
            return Role.for_color(color)

        arrival.task = asyncio.create_task(self._debounce(arrival.connection_id))
        return None

    async def assign_after_debounce(self, connection_id: str) -> Role | None:
        """Run the ordinary assignment for an arrival unless another path already handled it."""
        arrival = self._arrivals.get(connection_id)
        if arrival is None or arrival.reconciled:
            return None
        arrival.reconciled = True
        arrival.task = None
        return await self.assign(connection_id)

    async def assign(self, connection_id: str) -> Role:
        """Assign a role: pending reconnect by identity, then the first empty seat, then spectator."""
        arrival = self._arrivals.setdefault(connection_id, Arrival(connection_id=connection_id))
        state = self._ctx.state

        color = state.pending_color_of(connection_id)
        if color is not None:
            await self._reconnect_seat(color, arrival)
            return Role.for_color(color)

        for color in COLORS:
            if state.seats[color] is None:
                await self._take_seat(color, arrival)
                return Role.for_color(color)

        await self._make_spectator(arrival)
        return Role.SPECTATOR

    async def handle_reconnect_request(self, connection_id: str, color: Color, old_connection_id: str) -> Role | None:
        """Claim a seat explicitly. Returns the role granted, or None if the request was refused."""
        state = self._ctx.state
        if state.seat_of(connection_id) is not None:
            logger.info("reconnect request from seated connection ignored", connection_id=connection_id)
            return None
        if state.seats[color] is not None:
            logger.info("reconnect request for occupied seat refused", connection_id=connection_id, color=color)
            return None

        arrival = self._arrivals.setdefault(connection_id, Arrival(connection_id=connection_id))
        arrival.reconciled = True

        if state.pending_reconnect[color] == old_connection_id:
            await self._reconnect_seat(color, arrival)
        else:
            await self._take_seat(color, arrival)
        return Role.for_color(color)

    def forget(self, connection_id: str) -> None:
        """Drop a departed connection, cancelling its pending debounce."""
        arrival = self._arrivals.pop(connection_id, None)
        if arrival is not None and arrival.task is not None and not arrival.task.done():
            if arrival.task is not asyncio.current_task():
                arrival.task.cancel()

    def cancel_pending(self) -> None:
        """Cancel every debounce still waiting. Used at shutdown."""
        for connection_id in list(self._arrivals):
            self.forget(connection_id)

    async def _debounce(self, connection_id: str) -> None:
        try:
            await asyncio.sleep(self._ctx.config.assignment_debounce_seconds)
            await self._on_debounce_elapsed(connection_id)
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("debounced assignment failed", connection_id=connection_id)

    async def _take_seat(self, color: Color, arrival: Arrival) -> None:
        state = self._ctx.state
        if state.pending_reconnect[color] is not None:
            self._reconciler.release(color)
        state.spectators.discard(arrival.connection_id)
        state.seats[color] = arrival.connection_id
        state.display_names[color] = arrival.display_name
        logger.info("seat assigned", color=color, connection_id=arrival.connection_id)
        await self._send_seat(color, arrival.connection_id)

    async def _reconnect_seat(self, color: Color, arrival: Arrival) -> None:
        state = self._ctx.state
        state.spectators.discard(arrival.connection_id)
        state.seats[color] = arrival.connection_id
        if arrival.display_name:
            state.display_names[color] = arrival.display_name
        await self._send_seat(color, arrival.connection_id)
        await self._reconciler.complete_reconnection(color)

    async def _make_spectator(self, arrival: Arrival) -> None:
        connection_id = arrival.connection_id
        self._ctx.state.spectators.add(connection_id)
        logger.info("spectator joined", connection_id=connection_id)
        broadcaster = self._ctx.broadcaster
        await broadcaster.send(connection_id, SpectatorRoleMessage(connection_id=connection_id).model_dump())
        await broadcaster.send(connection_id, SpectatorNoticeMessage(message=SPECTATOR_NOTICE).model_dump())
        await broadcaster.send(connection_id, self._ctx.board_state_message())

    async def _send_seat(self, color: Color, connection_id: str) -> None:
        broadcaster = self._ctx.broadcaster
        await broadcaster.send(connection_id, PlayerRoleMessage(role=color, connection_id=connection_id).model_dump())
        await broadcaster.send(connection_id, self._ctx.board_state_message())
