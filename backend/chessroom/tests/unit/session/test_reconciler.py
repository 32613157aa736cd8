"""Disconnect grace periods, reconnection and expiry."""

import pytest

from chessroom.messaging.types import ServerMessageType
from chessroom.oracle.enums import Color, GameOutcome
from chessroom.oracle.types import MoveSpec
from chessroom.session.config import SessionConfig
from chessroom.session.manager import SessionManager
from chessroom.session.models import SessionPhase
from chessroom.session.reconciler import ReconcilerStatus
from chessroom.session.timer_manager import TimerKind
from chessroom.tests.helpers.session import FAST_CONFIG, SLOW_CONFIG, join, seat_two_players, settle
from chessroom.tests.mocks import MockConnection, MockOracle

E2E4 = MoveSpec(from_square="e2", to_square="e4")


@pytest.fixture
async def fast_manager():
    manager = SessionManager(MockOracle(), config=FAST_CONFIG)
    yield manager
    await manager.stop()


class TestDisconnect:
    async def test_player_disconnect_starts_grace_period(self, manager):
        _white, black = await seat_two_players(manager)

        await manager.disconnect("white-1")

        state = manager.state
        assert state.seats[Color.WHITE] is None
        assert state.pending_reconnect[Color.WHITE] == "white-1"
        assert state.started is False
        assert manager.reconciler.status == ReconcilerStatus.GRACE_PERIOD
        assert manager.reconciler.grace_color == Color.WHITE
        assert manager.timers.is_active(TimerKind.DISCONNECT_GRACE)

        notice = black.messages_of_type(ServerMessageType.OPPONENT_DISCONNECTED)
        assert len(notice) == 1
        assert notice[0]["color"] == "w"
        assert "60 seconds" in notice[0]["message"]
        assert black.messages_of_type(ServerMessageType.PLAYERS_INFO)[-1]["white"] is None

    async def test_spectator_disconnect_only_leaves_spectators(self, manager):
        white, _black = await seat_two_players(manager)
        await join(manager, MockConnection("s1"))
        white._outbox.clear()

        await manager.disconnect("s1")

        assert "s1" not in manager.state.spectators
        assert manager.state.started is True
        assert manager.reconciler.status == ReconcilerStatus.IDLE
        assert white.sent_messages == []

    async def test_unknown_disconnect_is_harmless(self, manager):
        await seat_two_players(manager)

        await manager.disconnect("nobody")

        assert manager.state.started is True
        assert manager.reconciler.status == ReconcilerStatus.IDLE


class TestReconnect:
    async def test_identity_match_restores_seat_and_game(self, manager):
        _white, black = await seat_two_players(manager)
        await manager.disconnect("white-1")
        black._outbox.clear()

        returning = MockConnection("white-1")
        await manager.connect(returning)

        state = manager.state
        assert state.seats[Color.WHITE] == "white-1"
        assert state.pending_reconnect[Color.WHITE] is None
        assert state.started is True
        assert manager.reconciler.status == ReconcilerStatus.IDLE
        assert not manager.timers.is_active(TimerKind.DISCONNECT_GRACE)
        assert returning.sent_messages[0]["role"] == "w"
        assert black.sent_types()[:2] == [
            ServerMessageType.OPPONENT_RECONNECTED,
            ServerMessageType.GAME_RESUMED,
        ]

    async def test_reconnect_request_counts_as_reconnection(self, manager):
        white, _black = await seat_two_players(manager)
        await manager.disconnect("black-1")
        white._outbox.clear()

        newcomer = MockConnection("black-2")
        await manager.connect(newcomer)
        await manager.reconnect_player("black-2", Color.BLACK, "black-1")

        assert manager.state.seats[Color.BLACK] == "black-2"
        assert manager.state.started is True
        assert ServerMessageType.OPPONENT_RECONNECTED in white.sent_types()
        assert ServerMessageType.GAME_RESUMED in white.sent_types()

    async def test_reconnect_without_opponent_does_not_start(self, manager):
        await seat_two_players(manager)
        await manager.disconnect("white-1")
        await manager.disconnect("black-1")

        await manager.connect(MockConnection("white-1"))

        assert manager.state.seats[Color.WHITE] == "white-1"
        assert manager.state.started is False

    async def test_double_disconnect_rearms_for_remaining_color(self, manager):
        await seat_two_players(manager)
        await manager.disconnect("white-1")
        await manager.disconnect("black-1")

        assert manager.reconciler.grace_color == Color.BLACK
        black_deadline = manager.reconciler.deadline(Color.BLACK)

        await manager.connect(MockConnection("white-1"))

        assert manager.reconciler.status == ReconcilerStatus.GRACE_PERIOD
        assert manager.reconciler.grace_color == Color.BLACK
        assert manager.reconciler.deadline(Color.BLACK) == black_deadline
        assert manager.timers.is_active(TimerKind.DISCONNECT_GRACE)
        remaining = manager.timers.remaining(TimerKind.DISCONNECT_GRACE)
        assert remaining is not None
        assert remaining <= manager.config.grace_period_seconds

    async def test_takeover_during_grace_releases_pending(self, manager):
        _white, black = await seat_two_players(manager)
        await manager.disconnect("white-1")
        black._outbox.clear()

        newcomer = await join(manager, MockConnection("fresh"))

        assert manager.state.seats[Color.WHITE] == "fresh"
        assert manager.state.pending_reconnect[Color.WHITE] is None
        assert manager.reconciler.status == ReconcilerStatus.IDLE
        assert not manager.timers.is_active(TimerKind.DISCONNECT_GRACE)
        assert newcomer.sent_messages[0]["role"] == "w"
        assert ServerMessageType.OPPONENT_RECONNECTED not in black.sent_types()

    async def test_return_during_game_over_does_not_resume(self):
        manager = SessionManager(MockOracle(outcome_after=(1, GameOutcome.CHECKMATE)), config=SLOW_CONFIG)
        try:
            white, _black = await seat_two_players(manager)
            await manager.submit_move("white-1", E2E4)
            await manager.disconnect("black-1")
            white._outbox.clear()

            await manager.connect(MockConnection("black-1"))

            assert manager.phase == SessionPhase.GAME_OVER
            assert ServerMessageType.OPPONENT_RECONNECTED in white.sent_types()
            assert ServerMessageType.GAME_RESUMED not in white.sent_types()
        finally:
            await manager.stop()


class TestReconnectBeforeFirstGame:
    """A seat vacated before any game started is refilled through the ordinary start."""

    async def seat_after_early_disconnect(self, manager: SessionManager) -> MockConnection:
        await join(manager, MockConnection("white-1"))
        await manager.disconnect("white-1")

        black = MockConnection("black-1")
        # claim black before the debounce would hand it the pending white seat
        await manager.connect(black)
        await manager.reconnect_player("black-1", Color.BLACK, "stale")
        await manager.connect(MockConnection("white-1"))
        return black

    async def test_game_starts_properly(self):
        config = SLOW_CONFIG.model_copy(update={"assignment_debounce_seconds": 0.05})
        manager = SessionManager(MockOracle(), config=config)
        try:
            black = await self.seat_after_early_disconnect(manager)

            state = manager.state
            assert state.seats == {Color.WHITE: "white-1", Color.BLACK: "black-1"}
            assert state.started is True
            assert state.last_activity is not None
            assert black.messages_of_type(ServerMessageType.GAME_STARTED) == [{"type": "gameStarted"}]
            assert ServerMessageType.GAME_RESUMED not in black.sent_types()
        finally:
            await manager.stop()

    async def test_abandoned_game_is_idle_reset(self):
        config = SessionConfig(
            idle_timeout_seconds=0.05,
            idle_sweep_interval_seconds=0.01,
            assignment_debounce_seconds=0.05,
        )
        manager = SessionManager(MockOracle(), config=config)
        manager.start()
        try:
            black = await self.seat_after_early_disconnect(manager)

            await settle(0.2)

            assert manager.phase == SessionPhase.WAITING_FOR_PLAYERS
            assert ServerMessageType.GAME_RESET in black.sent_types()
        finally:
            await manager.stop()


class TestGraceExpiry:
    async def test_expiry_announces_departure_then_resets(self):
        config = FAST_CONFIG.model_copy(update={"expiry_reset_seconds": 0.2})
        fast_manager = SessionManager(MockOracle(), config=config)
        try:
            _white, black = await seat_two_players(fast_manager)
            await fast_manager.disconnect("white-1")

            await settle(config.grace_period_seconds + 0.03)

            assert fast_manager.reconciler.status == ReconcilerStatus.EXPIRING
            assert fast_manager.state.pending_reconnect[Color.WHITE] is None
            left = black.messages_of_type(ServerMessageType.PLAYER_LEFT)
            assert left == [{"type": "playerLeft", "message": "White player left the game.", "color": "w"}]

            await settle(config.expiry_reset_seconds + 0.05)

            assert ServerMessageType.GAME_RESET in black.sent_types()
            assert fast_manager.phase == SessionPhase.WAITING_FOR_PLAYERS
            assert fast_manager.reconciler.status == ReconcilerStatus.IDLE
            assert fast_manager.state.seats == {Color.WHITE: None, Color.BLACK: None}
        finally:
            await fast_manager.stop()

    async def test_return_after_expiry_is_fresh_arrival(self, fast_manager):
        _white, black = await seat_two_players(fast_manager)
        await fast_manager.disconnect("white-1")
        await settle(FAST_CONFIG.grace_period_seconds + FAST_CONFIG.expiry_reset_seconds + 0.03)
        black._outbox.clear()

        returning = await join(fast_manager, MockConnection("white-1"))

        assert fast_manager.state.seats[Color.WHITE] == "white-1"
        assert fast_manager.state.started is False
        assert ServerMessageType.WAITING_FOR_OPPONENT in returning.sent_types()
        assert ServerMessageType.OPPONENT_RECONNECTED not in black.sent_types()
        assert ServerMessageType.GAME_RESUMED not in black.sent_types()

    async def test_reconnect_in_time_cancels_expiry(self, fast_manager):
        _white, black = await seat_two_players(fast_manager)
        await fast_manager.disconnect("white-1")
        await fast_manager.connect(MockConnection("white-1"))

        await settle(FAST_CONFIG.grace_period_seconds + 0.02)

        assert black.messages_of_type(ServerMessageType.PLAYER_LEFT) == []
        assert fast_manager.state.started is True
