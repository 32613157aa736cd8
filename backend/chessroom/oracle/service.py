from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from chessroom.oracle.enums import Color, GameOutcome
    from chessroom.oracle.types import MoveSpec


class GameOracle(ABC):
    """
    Abstract interface for the chess rule engine.

    The session layer treats positions as opaque values: it creates them,
    hands them back to the oracle, and stores whatever the oracle returns.
    """

    @abstractmethod
    def new_position(self) -> Any:  # noqa: ANN401
        """Return the starting position."""
        ...

    @abstractmethod
    def apply_move(self, position: Any, move: MoveSpec) -> str:  # noqa: ANN401
        """
        Apply a move to the position in place.

        Returns the move in SAN. Raises IllegalMoveError (or MalformedMoveError)
        without touching the position when the move is rejected.
        """
        ...

    @abstractmethod
    def current_turn(self, position: Any) -> Color:  # noqa: ANN401
        """Return the side to move."""
        ...

    @abstractmethod
    def outcome(self, position: Any) -> GameOutcome | None:  # noqa: ANN401
        """Return the first terminal condition that holds, or None while play continues."""
        ...

    @abstractmethod
    def serialize(self, position: Any) -> str:  # noqa: ANN401
        """Serialize the position for the wire."""
        ...

    @abstractmethod
    def deserialize(self, data: str) -> Any:  # noqa: ANN401
        """Rebuild a position from its serialized form."""
        ...

    def is_game_over(self, position: Any) -> bool:  # noqa: ANN401
        return self.outcome(position) is not None
