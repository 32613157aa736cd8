"""What the session layer needs from a client connection."""

from abc import ABC, abstractmethod
from typing import Any

from chessroom.messaging.encoder import encode


class ConnectionProtocol(ABC):
    """
    Outbound half of a client connection.

    Reading frames is the transport's job (see server.websocket); the session
    only addresses connections by id, pushes MessagePack maps to them and
    closes them. Seat assignment, reconnection and moves can therefore be
    driven in tests with an in-memory connection.
    """

    @property
    @abstractmethod
    def connection_id(self) -> str:
        """Identity of the client behind this connection.

        Stable across reconnects when the client presents its previous identity.
        """
        ...

    @property
    def display_name(self) -> str | None:
        return None

    @abstractmethod
    async def send_bytes(self, data: bytes) -> None: ...

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None: ...

    async def send_message(self, data: dict[str, Any]) -> None:
        """Encode one server message as a MessagePack map and send it."""
        await self.send_bytes(encode(data))
