from dataclasses import dataclass, field

from chessroom.oracle.enums import Color, GameOutcome
from chessroom.oracle.exceptions import IllegalMoveError
from chessroom.oracle.service import GameOracle
from chessroom.oracle.types import MoveSpec


@dataclass
class MockPosition:
    """Position stub: the list of applied moves and the side to move."""

    moves: list[str] = field(default_factory=list)
    turn: Color = Color.WHITE


class MockOracle(GameOracle):
    """Scriptable oracle for session tests.

    Every well-formed move is legal unless its UCI text is listed in
    ``illegal_moves``. ``outcome_after`` ends the game once the given number
    of moves has been played.
    """

    def __init__(
        self,
        illegal_moves: set[str] | None = None,
        outcome_after: tuple[int, GameOutcome] | None = None,
    ) -> None:
        self.illegal_moves = illegal_moves or set()
        self.outcome_after = outcome_after
        self.applied: list[str] = []

    def new_position(self) -> MockPosition:
        return MockPosition()

    def apply_move(self, position: MockPosition, move: MoveSpec) -> str:
        if move.uci in self.illegal_moves:
            raise IllegalMoveError(move.uci)
        position.moves.append(move.uci)
        position.turn = position.turn.opponent
        self.applied.append(move.uci)
        return move.uci

    def current_turn(self, position: MockPosition) -> Color:
        return position.turn

    def outcome(self, position: MockPosition) -> GameOutcome | None:
        if self.outcome_after is None:
            return None
        count, outcome = self.outcome_after
        return outcome if len(position.moves) >= count else None

    def serialize(self, position: MockPosition) -> str:
        return f"{position.turn.value}:{','.join(position.moves)}"

    def deserialize(self, data: str) -> MockPosition:
        turn, _, moves = data.partition(":")
        return MockPosition(moves=moves.split(",") if moves else [], turn=Color(turn))
