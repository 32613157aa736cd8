from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from chessroom.messaging.types import (
    ClientMessageType,
    ErrorMessage,
    MoveMessage,
    PingMessage,
    ReconnectPlayerMessage,
    RequestRematchMessage,
    SessionErrorCode,
    parse_client_message,
)

if TYPE_CHECKING:
    from chessroom.messaging.protocol import ConnectionProtocol
    from chessroom.session.manager import SessionManager

logger = logging.getLogger(__name__)


class MessageRouter:
    """
    Turn decoded client frames into SessionManager calls.

    Frames that fail validation get a sessionError, except malformed moves,
    which still go to the session so the sender is treated as having made an
    illegal move.
    """

    def __init__(self, session_manager: SessionManager) -> None:
        self._session_manager = session_manager

    async def handle_message(
        self,
        connection: ConnectionProtocol,
        raw_message: dict[str, Any],
    ) -> None:
        try:
            message = parse_client_message(raw_message)
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            if raw_message.get("type") == ClientMessageType.MOVE:
                # a move with bad squares still goes through turn checks and earns invalidMove
                await self._handle_malformed_move(connection, raw_message)
                return
            logger.warning("invalid message from %s: %s", connection.connection_id, e)
            await connection.send_message(
                ErrorMessage(code=SessionErrorCode.INVALID_MESSAGE, message=str(e)).model_dump(),
            )
            return

        try:
            if isinstance(message, MoveMessage):
                await self._session_manager.submit_move(
                    connection.connection_id,
                    message.to_spec(),
                    payload=_move_payload(raw_message),
                )
            elif isinstance(message, ReconnectPlayerMessage):
                await self._session_manager.reconnect_player(
                    connection.connection_id,
                    message.role,
                    message.old_connection_id,
                )
            elif isinstance(message, RequestRematchMessage):
                await self._session_manager.request_rematch(connection.connection_id)
            elif isinstance(message, PingMessage):
                await self._session_manager.handle_ping(connection)
        except Exception:
            logger.exception("error handling %s from %s", message.type, connection.connection_id)

    async def _handle_malformed_move(self, connection: ConnectionProtocol, raw_message: dict[str, Any]) -> None:
        logger.info("malformed move from %s", connection.connection_id)
        try:
            await self._session_manager.submit_move(
                connection.connection_id,
                None,
                payload=_move_payload(raw_message),
            )
        except Exception:
            logger.exception("error handling malformed move from %s", connection.connection_id)

    async def handle_connect(self, connection: ConnectionProtocol) -> None:
        await self._session_manager.connect(connection)

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        await self._session_manager.disconnect(connection.connection_id)

    def is_connected(self, connection_id: str) -> bool:
        return self._session_manager.is_connected(connection_id)


def _move_payload(raw_message: dict[str, Any]) -> dict[str, Any]:
    """The move as the client sent it, echoed back in invalidMove."""
    return {k: v for k, v in raw_message.items() if k != "type"}
