from unittest.mock import AsyncMock

from chessroom.messaging.router import MessageRouter
from chessroom.messaging.types import SessionErrorCode, ServerMessageType
from chessroom.oracle.enums import Color
from chessroom.session.models import SessionPhase
from chessroom.tests.helpers.session import join, seat_two_players
from chessroom.tests.mocks import MockConnection


class TestMessageRouter:
    async def test_connect_assigns_a_seat(self, manager, message_router):
        conn = MockConnection("c1")

        await message_router.handle_connect(conn)
        await join(manager, MockConnection("c2"))

        assert manager.state.seats[Color.WHITE] == "c1"
        assert message_router.is_connected("c1")

    async def test_move_routed_to_session(self, manager, message_router):
        white, black = await seat_two_players(manager)

        await message_router.handle_message(white, {"type": "move", "from": "e2", "to": "e4"})

        moves = black.messages_of_type(ServerMessageType.MOVE)
        assert moves == [{"type": "move", "move": {"from": "e2", "to": "e4", "promotion": None}}]

    async def test_malformed_move_gets_invalid_move(self, manager, message_router):
        white, _black = await seat_two_players(manager)
        payload = {"type": "move", "from": "z9", "to": "e4"}

        await message_router.handle_message(white, payload)

        invalid = white.messages_of_type(ServerMessageType.INVALID_MOVE)
        assert invalid == [{"type": "invalidMove", "move": {"from": "z9", "to": "e4"}}]
        assert white.messages_of_type(ServerMessageType.ERROR) == []

    async def test_malformed_move_out_of_turn_is_silent(self, manager, message_router):
        _white, black = await seat_two_players(manager)

        await message_router.handle_message(black, {"type": "move", "from": "z9"})

        assert black.sent_messages == []

    async def test_unknown_message_type_returns_session_error(self, message_router, mock_connection):
        await message_router.handle_message(mock_connection, {"type": "resign"})

        errors = mock_connection.messages_of_type(ServerMessageType.ERROR)
        assert len(errors) == 1
        assert errors[0]["code"] == SessionErrorCode.INVALID_MESSAGE

    async def test_ping_returns_pong(self, message_router, mock_connection):
        await message_router.handle_message(mock_connection, {"type": "ping"})

        assert mock_connection.sent_types() == [ServerMessageType.PONG]

    async def test_rematch_routed(self, manager, message_router):
        white, black = await seat_two_players(manager)
        await message_router.handle_message(white, {"type": "move", "from": "e2", "to": "e4"})

        await message_router.handle_message(black, {"type": "requestRematch"})

        assert manager.phase == SessionPhase.WAITING_FOR_PLAYERS
        assert ServerMessageType.GAME_RESET in white.sent_types()

    async def test_reconnect_player_routed(self, manager, message_router):
        white, _black = await seat_two_players(manager)
        await message_router.handle_disconnect(white)

        returning = MockConnection("white-2")
        await message_router.handle_connect(returning)
        await message_router.handle_message(
            returning,
            {"type": "reconnectPlayer", "role": "w", "oldConnectionId": "white-1"},
        )

        assert manager.state.seats[Color.WHITE] == "white-2"
        assert manager.state.started is True

    async def test_handler_exception_is_contained(self, message_router, mock_connection):
        message_router._session_manager.request_rematch = AsyncMock(side_effect=RuntimeError("boom"))

        await message_router.handle_message(mock_connection, {"type": "requestRematch"})

        assert mock_connection.sent_messages == []

    async def test_disconnect_vacates_seat(self, manager, message_router):
        white, _black = await seat_two_players(manager)

        await message_router.handle_disconnect(white)

        assert manager.state.seats[Color.WHITE] is None
        assert manager.state.pending_reconnect[Color.WHITE] == "white-1"
