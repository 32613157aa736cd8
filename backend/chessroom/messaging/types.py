from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from chessroom.oracle.enums import Color
from chessroom.oracle.types import PROMOTION_PATTERN, SQUARE_PATTERN, MoveSpec


class ClientMessageType(StrEnum):
    MOVE = "move"
    RECONNECT_PLAYER = "reconnectPlayer"
    REQUEST_REMATCH = "requestRematch"
    PING = "ping"


class ServerMessageType(StrEnum):
    PLAYER_ROLE = "playerRole"
    SPECTATOR_ROLE = "spectatorRole"
    SPECTATOR_MESSAGE = "spectatorMessage"
    WAITING_FOR_OPPONENT = "waitingForOpponent"
    BOARD_STATE = "boardState"
    GAME_STARTED = "gameStarted"
    MOVE = "move"
    INVALID_MOVE = "invalidMove"
    GAME_OVER = "gameOver"
    OPPONENT_DISCONNECTED = "opponentDisconnected"
    OPPONENT_RECONNECTED = "opponentReconnected"
    GAME_RESUMED = "gameResumed"
    PLAYER_LEFT = "playerLeft"
    GAME_RESET = "gameReset"
    PLAYERS_INFO = "playersInfo"
    PONG = "pong"
    ERROR = "sessionError"


class SessionErrorCode(StrEnum):
    INVALID_MESSAGE = "invalid_message"
    RATE_LIMITED = "rate_limited"


# --- Client -> server ---


class MoveMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal[ClientMessageType.MOVE] = ClientMessageType.MOVE
    from_square: str = Field(alias="from", pattern=SQUARE_PATTERN)
    to_square: str = Field(alias="to", pattern=SQUARE_PATTERN)
    promotion: str | None = Field(default=None, pattern=PROMOTION_PATTERN)

    def to_spec(self) -> MoveSpec:
        return MoveSpec(from_square=self.from_square, to_square=self.to_square, promotion=self.promotion)


class ReconnectPlayerMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal[ClientMessageType.RECONNECT_PLAYER] = ClientMessageType.RECONNECT_PLAYER
    role: Color
    old_connection_id: str = Field(alias="oldConnectionId", min_length=1, max_length=100)


class RequestRematchMessage(BaseModel):
    type: Literal[ClientMessageType.REQUEST_REMATCH] = ClientMessageType.REQUEST_REMATCH


class PingMessage(BaseModel):
    type: Literal[ClientMessageType.PING] = ClientMessageType.PING


ClientMessage = Annotated[
    MoveMessage | ReconnectPlayerMessage | RequestRematchMessage | PingMessage,
    Field(discriminator="type"),
]

_client_message_adapter = TypeAdapter(ClientMessage)


def parse_client_message(
    data: dict[str, Any],
) -> MoveMessage | ReconnectPlayerMessage | RequestRematchMessage | PingMessage:
    """Parse a raw dict into a typed client message. Raises ValidationError on bad input."""
    return _client_message_adapter.validate_python(data)


# --- Server -> client ---


class PlayerRoleMessage(BaseModel):
    type: Literal[ServerMessageType.PLAYER_ROLE] = ServerMessageType.PLAYER_ROLE
    role: Color
    connection_id: str


class SpectatorRoleMessage(BaseModel):
    type: Literal[ServerMessageType.SPECTATOR_ROLE] = ServerMessageType.SPECTATOR_ROLE
    connection_id: str


class SpectatorNoticeMessage(BaseModel):
    type: Literal[ServerMessageType.SPECTATOR_MESSAGE] = ServerMessageType.SPECTATOR_MESSAGE
    message: str


class WaitingForOpponentMessage(BaseModel):
    type: Literal[ServerMessageType.WAITING_FOR_OPPONENT] = ServerMessageType.WAITING_FOR_OPPONENT
    message: str


class BoardStateMessage(BaseModel):
    type: Literal[ServerMessageType.BOARD_STATE] = ServerMessageType.BOARD_STATE
    fen: str


class GameStartedMessage(BaseModel):
    type: Literal[ServerMessageType.GAME_STARTED] = ServerMessageType.GAME_STARTED


class MoveMadeMessage(BaseModel):
    type: Literal[ServerMessageType.MOVE] = ServerMessageType.MOVE
    move: dict[str, Any]


class InvalidMoveMessage(BaseModel):
    type: Literal[ServerMessageType.INVALID_MOVE] = ServerMessageType.INVALID_MOVE
    move: dict[str, Any]


class GameOverMessage(BaseModel):
    type: Literal[ServerMessageType.GAME_OVER] = ServerMessageType.GAME_OVER
    message: str


class OpponentDisconnectedMessage(BaseModel):
    type: Literal[ServerMessageType.OPPONENT_DISCONNECTED] = ServerMessageType.OPPONENT_DISCONNECTED
    message: str
    color: Color


class OpponentReconnectedMessage(BaseModel):
    type: Literal[ServerMessageType.OPPONENT_RECONNECTED] = ServerMessageType.OPPONENT_RECONNECTED
    message: str


class GameResumedMessage(BaseModel):
    type: Literal[ServerMessageType.GAME_RESUMED] = ServerMessageType.GAME_RESUMED
    message: str


class PlayerLeftMessage(BaseModel):
    type: Literal[ServerMessageType.PLAYER_LEFT] = ServerMessageType.PLAYER_LEFT
    message: str
    color: Color


class GameResetMessage(BaseModel):
    type: Literal[ServerMessageType.GAME_RESET] = ServerMessageType.GAME_RESET


class PlayersInfoMessage(BaseModel):
    type: Literal[ServerMessageType.PLAYERS_INFO] = ServerMessageType.PLAYERS_INFO
    white: str | None
    black: str | None
    started: bool


class PongMessage(BaseModel):
    type: Literal[ServerMessageType.PONG] = ServerMessageType.PONG


class ErrorMessage(BaseModel):
    type: Literal[ServerMessageType.ERROR] = ServerMessageType.ERROR
    code: SessionErrorCode
    message: str
