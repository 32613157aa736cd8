from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any

import structlog

from chessroom.messaging.types import (
    GameOverMessage,
    GameResetMessage,
    GameStartedMessage,
    InvalidMoveMessage,
    MoveMadeMessage,
    PongMessage,
    WaitingForOpponentMessage,
)
from chessroom.oracle.enums import Color, GameOutcome
from chessroom.oracle.exceptions import IllegalMoveError, MalformedMoveError
from chessroom.session.broadcast import Broadcaster
from chessroom.session.config import SessionConfig
from chessroom.session.context import SessionContext
from chessroom.session.events import (
    ArrivalDebounced,
    ConnectionClosed,
    ConnectionOpened,
    IdleSweepDue,
    MoveResult,
    MoveSubmitted,
    ReconnectRequested,
    RematchRequested,
    TimerFired,
)
from chessroom.session.exceptions import GameNotStartedError, MoveRejectedError, NotYourTurnError
from chessroom.session.heartbeat import HeartbeatMonitor
from chessroom.session.models import Role, SessionPhase, SessionState
from chessroom.session.reconciler import DisconnectReconciler
from chessroom.session.roles import RoleAssigner
from chessroom.session.timer_manager import TimerKind, TimerManager

if TYPE_CHECKING:
    from chessroom.messaging.protocol import ConnectionProtocol
    from chessroom.oracle.service import GameOracle
    from chessroom.oracle.types import MoveSpec
    from chessroom.session.events import SessionEvent

logger = structlog.get_logger()

IDLE_SWEEP = "idle_sweep"
WAITING_NOTICE = "Waiting for an opponent to join..."

_DRAW_MESSAGES = {
    GameOutcome.STALEMATE: "Stalemate!",
    GameOutcome.THREEFOLD_REPETITION: "Draw by threefold repetition!",
    GameOutcome.INSUFFICIENT_MATERIAL: "Draw by insufficient material!",
    GameOutcome.FIFTY_MOVES: "Draw by fifty-move rule!",
}


def describe_outcome(outcome: GameOutcome, side_to_move: Color) -> str:
    """Human-readable game over text. In checkmate the side to move is the one mated."""
    if outcome is GameOutcome.CHECKMATE:
        return f"Checkmate! {side_to_move.opponent.label} wins!"
    return _DRAW_MESSAGES[outcome]


class SessionManager:
    """Own the single game session and run its state machine.

    Phases: WAITING_FOR_PLAYERS -> IN_PROGRESS -> GAME_OVER -> (reset) -> WAITING_FOR_PLAYERS.

    Every event, whether it comes from a connection or a timer, goes through
    dispatch() and is handled under one lock, so each handler sees and leaves
    SessionState consistent even though it awaits sends.
    """

    def __init__(
        self,
        oracle: GameOracle,
        config: SessionConfig | None = None,
        broadcaster: Broadcaster | None = None,
        heartbeat: HeartbeatMonitor | None = None,
    ) -> None:
        self._oracle = oracle
        self._config = config or SessionConfig()
        self._broadcaster = broadcaster or Broadcaster()
        self._heartbeat = heartbeat or HeartbeatMonitor()
        self._timer_manager = TimerManager(on_fire=self._on_timer_fired)
        self._state = SessionState.initial(oracle.new_position())
        self._context = SessionContext(
            state=self._state,
            oracle=oracle,
            broadcaster=self._broadcaster,
            timers=self._timer_manager,
            config=self._config,
        )
        self._reconciler = DisconnectReconciler(self._context)
        self._roles = RoleAssigner(self._context, self._reconciler, on_debounce_elapsed=self._on_debounce_elapsed)
        self._lock = asyncio.Lock()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def phase(self) -> SessionPhase:
        return self._state.phase

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def broadcaster(self) -> Broadcaster:
        return self._broadcaster

    @property
    def reconciler(self) -> DisconnectReconciler:
        return self._reconciler

    @property
    def roles(self) -> RoleAssigner:
        return self._roles

    @property
    def timers(self) -> TimerManager:
        return self._timer_manager

    def is_connected(self, connection_id: str) -> bool:
        return self._broadcaster.is_connected(connection_id)

    # --- Lifecycle ---

    def start(self) -> None:
        """Start the recurring idle sweep and heartbeat checks. Needs a running event loop."""
        self._timer_manager.start_recurring(
            IDLE_SWEEP,
            self._config.idle_sweep_interval_seconds,
            self._on_idle_sweep,
        )
        self._heartbeat.start(self._live_connections)
        logger.info("session started")

    async def stop(self) -> None:
        self._roles.cancel_pending()
        await self._heartbeat.stop()
        await self._timer_manager.shutdown()
        await self._broadcaster.close_all()

    # --- Public entry points ---

    async def connect(self, connection: ConnectionProtocol) -> None:
        await self.dispatch(ConnectionOpened(connection))

    async def disconnect(self, connection_id: str) -> None:
        await self.dispatch(ConnectionClosed(connection_id))

    async def submit_move(
        self,
        connection_id: str,
        move: MoveSpec | None,
        payload: dict[str, Any] | None = None,
    ) -> MoveResult:
        """Submit a move. A None move stands for a payload that failed validation."""
        if payload is None:
            payload = move.to_wire() if move is not None else {}
        result = await self.dispatch(MoveSubmitted(connection_id, move, payload))
        return result if result is not None else MoveResult.REJECTED

    async def reconnect_player(self, connection_id: str, color: Color, old_connection_id: str) -> None:
        await self.dispatch(ReconnectRequested(connection_id, color, old_connection_id))

    async def request_rematch(self, connection_id: str | None = None) -> None:
        await self.dispatch(RematchRequested(connection_id))

    async def reset_game(self) -> None:
        async with self._lock:
            await self._reset()

    async def handle_ping(self, connection: ConnectionProtocol) -> None:
        """Respond to client ping with pong and update activity timestamp."""
        self._heartbeat.record_ping(connection.connection_id)
        await connection.send_message(PongMessage().model_dump())

    async def dispatch(self, event: SessionEvent) -> MoveResult | None:
        """Process one event under the session lock."""
        async with self._lock:
            if isinstance(event, ConnectionOpened):
                await self._handle_connection_opened(event.connection)
            elif isinstance(event, ConnectionClosed):
                await self._handle_connection_closed(event.connection_id)
            elif isinstance(event, ArrivalDebounced):
                role = await self._roles.assign_after_debounce(event.connection_id)
                if role is not None:
                    await self._after_assignment(event.connection_id, role)
            elif isinstance(event, MoveSubmitted):
                return await self._handle_move(event)
            elif isinstance(event, ReconnectRequested):
                role = await self._roles.handle_reconnect_request(
                    event.connection_id,
                    event.color,
                    event.old_connection_id,
                )
                if role is not None:
                    await self._after_assignment(event.connection_id, role)
            elif isinstance(event, RematchRequested):
                logger.info("rematch requested", connection_id=event.connection_id)
                await self._reset()
            elif isinstance(event, TimerFired):
                await self._handle_timer(event)
            elif isinstance(event, IdleSweepDue):
                await self._sweep_idle()
        return None

    # --- Connections ---

    async def _handle_connection_opened(self, connection: ConnectionProtocol) -> None:
        self._broadcaster.register(connection)
        self._heartbeat.record_connect(connection.connection_id)
        role = await self._roles.handle_arrival(connection)
        if role is not None:
            await self._after_assignment(connection.connection_id, role)

    async def _handle_connection_closed(self, connection_id: str) -> None:
        self._roles.forget(connection_id)
        self._heartbeat.record_disconnect(connection_id)
        self._broadcaster.unregister(connection_id)
        color = await self._reconciler.handle_disconnect(connection_id)
        if color is not None:
            await self._broadcaster.broadcast(self._context.players_info_message())

    async def _after_assignment(self, connection_id: str, role: Role) -> None:
        color = role.color
        if color is not None and self._state.seats[color.opponent] is None:
            await self._broadcaster.send(connection_id, WaitingForOpponentMessage(message=WAITING_NOTICE).model_dump())
        await self._broadcaster.broadcast(self._context.players_info_message())
        await self._check_game_start()

    async def _check_game_start(self) -> None:
        state = self._state
        if state.started or state.game_over or not state.both_seated:
            return
        state.started = True
        state.last_activity = time.monotonic()
        logger.info("game started", white=state.seats[Color.WHITE], black=state.seats[Color.BLACK])
        await self._broadcaster.broadcast(GameStartedMessage().model_dump())
        await self._broadcaster.broadcast(self._context.board_state_message())

    # --- Moves ---

    async def _handle_move(self, event: MoveSubmitted) -> MoveResult:
        state = self._state
        try:
            self._check_mover(event.connection_id)
            if event.move is None:
                raise MalformedMoveError(str(event.payload), "malformed move payload")
            self._oracle.apply_move(state.position, event.move)
        except MoveRejectedError as e:
            logger.debug("move ignored", connection_id=event.connection_id, reason=type(e).__name__)
            return MoveResult.REJECTED
        except IllegalMoveError as e:
            logger.info("invalid move", connection_id=event.connection_id, move=e.move, reason=e.reason)
            if self._config.notify_invalid_moves:
                await self._broadcaster.send(
                    event.connection_id,
                    InvalidMoveMessage(move=event.payload).model_dump(),
                )
            return MoveResult.REJECTED

        state.last_activity = time.monotonic()
        logger.info("move accepted", connection_id=event.connection_id, move=event.move.uci)
        await self._broadcaster.broadcast(MoveMadeMessage(move=event.move.to_wire()).model_dump())
        await self._broadcaster.broadcast(self._context.board_state_message())
        await self._check_game_over()
        return MoveResult.ACCEPTED

    def _check_mover(self, connection_id: str) -> None:
        state = self._state
        if not state.started or state.game_over:
            raise GameNotStartedError
        side_to_move = self._oracle.current_turn(state.position)
        if state.seats[side_to_move] != connection_id:
            raise NotYourTurnError

    async def _check_game_over(self) -> None:
        state = self._state
        outcome = self._oracle.outcome(state.position)
        if outcome is None:
            return
        state.game_over = True
        message = describe_outcome(outcome, self._oracle.current_turn(state.position))
        logger.info("game over", outcome=outcome)
        await self._broadcaster.broadcast(GameOverMessage(message=message).model_dump())
        self._timer_manager.schedule(TimerKind.RESET, self._config.game_over_reset_seconds)

    # --- Timers and reset ---

    async def _on_timer_fired(self, kind: TimerKind, generation: int) -> None:
        await self.dispatch(TimerFired(kind, generation))

    async def _on_debounce_elapsed(self, connection_id: str) -> None:
        await self.dispatch(ArrivalDebounced(connection_id))

    async def _on_idle_sweep(self) -> None:
        await self.dispatch(IdleSweepDue())

    async def _handle_timer(self, event: TimerFired) -> None:
        if not self._timer_manager.consume(event.kind, event.generation):
            return
        if event.kind is TimerKind.DISCONNECT_GRACE:
            await self._reconciler.handle_grace_expired()
        elif event.kind is TimerKind.RESET:
            await self._reset()

    async def _sweep_idle(self) -> None:
        state = self._state
        if not state.started or state.last_activity is None:
            return
        idle_for = time.monotonic() - state.last_activity
        if idle_for >= self._config.idle_timeout_seconds:
            logger.info("session idle, resetting", idle_seconds=round(idle_for))
            await self._reset()

    async def _reset(self) -> None:
        """Return the session to its initial state. Running it twice in a row equals running it once."""
        self._timer_manager.cancel_all()
        self._reconciler.reset()
        self._state.reset_to(self._oracle.new_position())
        logger.info("session reset")
        await self._broadcaster.broadcast(GameResetMessage().model_dump())
        await self._broadcaster.broadcast(self._context.players_info_message())

    def _live_connections(self) -> list[ConnectionProtocol]:
        return [c for cid in self._broadcaster.connection_ids if (c := self._broadcaster.get(cid)) is not None]

    def status(self) -> dict[str, Any]:
        """Snapshot for the HTTP status endpoint."""
        state = self._state
        return {
            "phase": state.phase.value,
            "white": state.seats[Color.WHITE] is not None,
            "black": state.seats[Color.BLACK] is not None,
            "spectators": len(state.spectators),
            "connections": self._broadcaster.connection_count,
            "reconciler": self._reconciler.status.value,
            "position": self._oracle.serialize(state.position),
        }
