from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from chessroom.oracle.enums import Color

COLORS = (Color.WHITE, Color.BLACK)


class Role(StrEnum):
    """Role of a connection within the session."""

    WHITE = "w"
    BLACK = "b"
    SPECTATOR = "spectator"

    @property
    def color(self) -> Color | None:
        if self is Role.SPECTATOR:
            return None
        return Color(self.value)

    @classmethod
    def for_color(cls, color: Color) -> Role:
        return cls(color.value)


class SessionPhase(StrEnum):
    WAITING_FOR_PLAYERS = "waiting_for_players"
    IN_PROGRESS = "in_progress"
    GAME_OVER = "game_over"


def _empty_by_color() -> dict[Color, str | None]:
    return dict.fromkeys(COLORS)


@dataclass
class SessionState:
    """The single game session held by the server process.

    Lifecycle:
    - Created once at startup via initial()
    - Mutated only by SessionManager (and its RoleAssigner/DisconnectReconciler helpers)
      while holding the session lock
    - Replaced field by field on reset (reset_to()), never destroyed
    """

    position: Any
    seats: dict[Color, str | None] = field(default_factory=_empty_by_color)
    display_names: dict[Color, str | None] = field(default_factory=_empty_by_color)
    pending_reconnect: dict[Color, str | None] = field(default_factory=_empty_by_color)
    spectators: set[str] = field(default_factory=set)
    started: bool = False
    game_over: bool = False
    last_activity: float | None = None  # time.monotonic() of the last accepted move or game start

    @classmethod
    def initial(cls, position: Any) -> SessionState:  # noqa: ANN401
        return cls(position=position)

    def reset_to(self, position: Any) -> None:  # noqa: ANN401
        """Reinitialize every field in place, keeping the instance shared by all handlers."""
        fresh = SessionState.initial(position)
        self.position = fresh.position
        self.seats = fresh.seats
        self.display_names = fresh.display_names
        self.pending_reconnect = fresh.pending_reconnect
        self.spectators = fresh.spectators
        self.started = fresh.started
        self.game_over = fresh.game_over
        self.last_activity = fresh.last_activity

    def seat_of(self, connection_id: str) -> Color | None:
        for color in COLORS:
            if self.seats[color] == connection_id:
                return color
        return None

    def role_of(self, connection_id: str) -> Role | None:
        color = self.seat_of(connection_id)
        if color is not None:
            return Role.for_color(color)
        if connection_id in self.spectators:
            return Role.SPECTATOR
        return None

    def pending_color_of(self, connection_id: str) -> Color | None:
        for color in COLORS:
            if self.pending_reconnect[color] == connection_id:
                return color
        return None

    @property
    def both_seated(self) -> bool:
        return all(self.seats[color] is not None for color in COLORS)

    @property
    def phase(self) -> SessionPhase:
        if self.game_over:
            return SessionPhase.GAME_OVER
        if self.started:
            return SessionPhase.IN_PROGRESS
        return SessionPhase.WAITING_FOR_PLAYERS
