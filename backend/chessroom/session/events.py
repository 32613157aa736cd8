"""Typed inbound events processed by SessionManager.dispatch().

Network activity and timer expiry are expressed the same way, so the whole
transition table can be driven from tests without a connection layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from chessroom.messaging.protocol import ConnectionProtocol
    from chessroom.oracle.enums import Color
    from chessroom.oracle.types import MoveSpec
    from chessroom.session.timer_manager import TimerKind


class MoveResult(StrEnum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"


@dataclass(frozen=True)
class ConnectionOpened:
    connection: ConnectionProtocol


@dataclass(frozen=True)
class ConnectionClosed:
    connection_id: str


@dataclass(frozen=True)
class ArrivalDebounced:
    connection_id: str


@dataclass(frozen=True)
class MoveSubmitted:
    """A move from a client. ``move`` is None when the payload could not be parsed."""

    connection_id: str
    move: MoveSpec | None
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ReconnectRequested:
    connection_id: str
    color: Color
    old_connection_id: str


@dataclass(frozen=True)
class RematchRequested:
    connection_id: str | None = None


@dataclass(frozen=True)
class TimerFired:
    kind: TimerKind
    generation: int


@dataclass(frozen=True)
class IdleSweepDue:
    pass


SessionEvent = (
    ConnectionOpened
    | ConnectionClosed
    | ArrivalDebounced
    | MoveSubmitted
    | ReconnectRequested
    | RematchRequested
    | TimerFired
    | IdleSweepDue
)
