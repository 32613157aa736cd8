from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog
from pydantic import ValidationError
from starlette.websockets import WebSocket, WebSocketDisconnect

from chessroom.messaging.encoder import DecodeError, decode
from chessroom.messaging.protocol import ConnectionProtocol
from chessroom.messaging.types import ErrorMessage, SessionErrorCode
from chessroom.server.rate_limit import TokenBucket
from chessroom.server.types import ClientIdentity

logger = structlog.get_logger()

if TYPE_CHECKING:
    from chessroom.messaging.router import MessageRouter

MAX_DECODE_STRIKES = 5  # consecutive undecodable frames before the socket is closed
CLOSE_TOO_MANY_DECODE_ERRORS = 4004


class WebSocketConnection(ConnectionProtocol):
    def __init__(
        self,
        websocket: WebSocket,
        connection_id: str | None = None,
        display_name: str | None = None,
    ) -> None:
        self._websocket = websocket
        self._connection_id = connection_id or str(uuid4())
        self._display_name = display_name

    @property
    def connection_id(self) -> str:
        return self._connection_id

    @property
    def display_name(self) -> str | None:
        return self._display_name

    async def send_bytes(self, data: bytes) -> None:
        try:
            await self._websocket.send_bytes(data)
        except WebSocketDisconnect as e:
            raise ConnectionError(f"client went away (code {e.code})") from e

    async def receive_bytes(self) -> bytes:
        try:
            return await self._websocket.receive_bytes()
        except WebSocketDisconnect as e:
            raise ConnectionError(f"client went away (code {e.code})") from e

    async def close(self, code: int = 1000, reason: str = "") -> None:
        # the heartbeat and shutdown may close a socket the client already dropped
        with contextlib.suppress(WebSocketDisconnect, RuntimeError):
            await self._websocket.close(code=code, reason=reason)


class InboundGate:
    """Admission control for one connection's inbound frames.

    admit() returns the decoded map, or the sessionError to answer with when
    the frame is undecodable or over the rate limit. A decodable frame clears
    the strike count; `exhausted` turns True after MAX_DECODE_STRIKES
    undecodable frames in a row.
    """

    def __init__(self, bucket: TokenBucket, max_strikes: int = MAX_DECODE_STRIKES) -> None:
        self._bucket = bucket
        self._max_strikes = max_strikes
        self.strikes = 0

    @property
    def exhausted(self) -> bool:
        return self.strikes >= self._max_strikes

    def admit(self, raw: bytes) -> dict[str, Any] | ErrorMessage:
        try:
            data = decode(raw)
        except DecodeError as e:
            self.strikes += 1
            logger.warning("undecodable frame", error=str(e), strikes=self.strikes)
            return ErrorMessage(code=SessionErrorCode.INVALID_MESSAGE, message=str(e))

        self.strikes = 0
        if not self._bucket.allow():
            logger.debug("frame over rate limit")
            return ErrorMessage(code=SessionErrorCode.RATE_LIMITED, message="Too many messages")
        return data


def resolve_identity(query: dict[str, str], router: MessageRouter) -> ClientIdentity:
    """Read the client's claimed identity, dropping parts that are invalid or already in use."""
    try:
        identity = ClientIdentity.model_validate(query)
    except ValidationError:
        logger.info("invalid client identity ignored")
        return ClientIdentity()
    if identity.client_id is not None and router.is_connected(identity.client_id):
        logger.info("client id already connected, issuing a new one", client_id=identity.client_id)
        identity = identity.model_copy(update={"client_id": None})
    return identity


async def websocket_endpoint(
    websocket: WebSocket,
    router: MessageRouter,
    *,
    rate: float,
    burst: int,
) -> None:
    await websocket.accept()

    identity = resolve_identity(dict(websocket.query_params), router)
    connection = WebSocketConnection(websocket, connection_id=identity.client_id, display_name=identity.name)
    structlog.contextvars.bind_contextvars(connection_id=connection.connection_id)
    logger.info("websocket connected")
    await router.handle_connect(connection)

    gate = InboundGate(TokenBucket(rate=rate, burst=burst))
    try:
        while True:
            admitted = gate.admit(await connection.receive_bytes())
            if isinstance(admitted, ErrorMessage):
                await connection.send_message(admitted.model_dump())
                if gate.exhausted:
                    logger.info("too many undecodable frames, closing")
                    await connection.close(code=CLOSE_TOO_MANY_DECODE_ERRORS, reason="too_many_decode_errors")
                    return
                continue
            await router.handle_message(connection, admitted)
    except (ConnectionError, WebSocketDisconnect, RuntimeError):
        logger.debug("receive loop ended")
    finally:
        logger.info("websocket disconnected")
        await router.handle_disconnect(connection)
        structlog.contextvars.clear_contextvars()
