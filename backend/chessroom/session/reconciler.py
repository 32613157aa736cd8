"""Disconnect grace periods and identity-based reconnection.

The reconciler runs one grace timer for the whole session rather than one per
color. Each disconnect of a seated player (re)schedules that timer, so when
both players drop, the most recent disconnect sets the deadline. If one of
them then returns, the timer is re-armed for the other color at the deadline
it was originally given.

States::

    IDLE --disconnect--> GRACE_PERIOD(color, deadline)
    GRACE_PERIOD --reconnect--> IDLE (or GRACE_PERIOD for the other pending color)
    GRACE_PERIOD --deadline--> EXPIRING --expiry delay--> session reset
"""

from __future__ import annotations

import time
from enum import StrEnum
from typing import TYPE_CHECKING

import structlog

from chessroom.messaging.types import (
    GameResumedMessage,
    OpponentDisconnectedMessage,
    OpponentReconnectedMessage,
    PlayerLeftMessage,
)
from chessroom.session.models import COLORS
from chessroom.session.timer_manager import TimerKind

if TYPE_CHECKING:
    from chessroom.oracle.enums import Color
    from chessroom.session.context import SessionContext

logger = structlog.get_logger()


class ReconcilerStatus(StrEnum):
    IDLE = "idle"
    GRACE_PERIOD = "grace_period"
    EXPIRING = "expiring"


class DisconnectReconciler:
    def __init__(self, context: SessionContext) -> None:
        self._ctx = context
        self._status = ReconcilerStatus.IDLE
        self._grace_color: Color | None = None
        self._deadlines: dict[Color, float] = {}  # pending color -> time.monotonic() deadline

    @property
    def status(self) -> ReconcilerStatus:
        return self._status

    @property
    def grace_color(self) -> Color | None:
        """Color whose deadline the running grace timer tracks."""
        return self._grace_color

    def deadline(self, color: Color) -> float | None:
        return self._deadlines.get(color)

    async def handle_disconnect(self, connection_id: str) -> Color | None:
        """Vacate whatever the connection held. Returns the color if a seat was vacated."""
        state = self._ctx.state
        if connection_id in state.spectators:
            state.spectators.discard(connection_id)
            logger.info("spectator left", connection_id=connection_id)
            return None

        color = state.seat_of(connection_id)
        if color is None:
            return None

        grace = self._ctx.config.grace_period_seconds
        state.seats[color] = None
        state.pending_reconnect[color] = connection_id
        state.started = False
        self._deadlines[color] = time.monotonic() + grace
        self._arm(color, grace)
        logger.info("player disconnected, grace period started", color=color, grace_seconds=grace)

        await self._ctx.broadcaster.send(
            state.seats[color.opponent],
            OpponentDisconnectedMessage(
                message=f"{color.label} player disconnected. Waiting {grace:g} seconds for them to reconnect...",
                color=color,
            ).model_dump(),
        )
        return color

    async def complete_reconnection(self, color: Color) -> None:
        """Finish a reconnection for a color whose seat has just been re-occupied.

        Resumes a game that was under way once both seats are filled again,
        and tells the players about it.
        """
        state = self._ctx.state
        self._clear_pending(color)
        logger.info("player reconnected", color=color, connection_id=state.seats[color])

        await self._ctx.broadcaster.send(
            state.seats[color.opponent],
            OpponentReconnectedMessage(message=f"{color.label} player reconnected.").model_dump(),
        )
        # last_activity is only set once a game has started; otherwise the
        # ordinary start check runs after the seat assignment
        if not state.both_seated or state.last_activity is None:
            return
        state.started = True
        if not state.game_over:
            await self._ctx.broadcaster.broadcast(
                GameResumedMessage(message="Both players are back. The game continues.").model_dump(),
            )

    def release(self, color: Color) -> None:
        """End a grace period because a different connection took the seat."""
        previous = self._ctx.state.pending_reconnect[color]
        self._clear_pending(color)
        logger.info("seat taken over during grace period", color=color, previous_connection_id=previous)

    async def handle_grace_expired(self) -> None:
        """The grace timer fired with no reconnection: announce the departure and schedule the reset."""
        state = self._ctx.state
        color = self._grace_color
        if self._status is not ReconcilerStatus.GRACE_PERIOD or color is None:
            return

        self._status = ReconcilerStatus.EXPIRING
        for pending in COLORS:
            state.pending_reconnect[pending] = None
        self._deadlines.clear()
        logger.info("grace period expired", color=color)

        await self._ctx.broadcaster.broadcast(
            PlayerLeftMessage(message=f"{color.label} player left the game.", color=color).model_dump(),
        )
        self._ctx.timers.schedule(TimerKind.RESET, self._ctx.config.expiry_reset_seconds)

    def reset(self) -> None:
        self._status = ReconcilerStatus.IDLE
        self._grace_color = None
        self._deadlines.clear()

    def _arm(self, color: Color, delay: float) -> None:
        self._status = ReconcilerStatus.GRACE_PERIOD
        self._grace_color = color
        self._ctx.timers.schedule(TimerKind.DISCONNECT_GRACE, delay)

    def _clear_pending(self, color: Color) -> None:
        self._ctx.state.pending_reconnect[color] = None
        self._deadlines.pop(color, None)

        other = color.opponent
        other_deadline = self._deadlines.get(other)
        if self._ctx.state.pending_reconnect[other] is not None and other_deadline is not None:
            self._arm(other, max(0.0, other_deadline - time.monotonic()))
            return

        if self._status is ReconcilerStatus.GRACE_PERIOD:
            self._ctx.timers.cancel(TimerKind.DISCONNECT_GRACE)
            self._status = ReconcilerStatus.IDLE
            self._grace_color = None
