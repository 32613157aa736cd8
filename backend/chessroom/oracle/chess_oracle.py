"""Chess rule oracle backed by python-chess.

Positions are ``chess.Board`` instances. Moves arrive as square pairs the way
browser clients send them (``{"from": "e2", "to": "e4", "promotion": "q"}``);
castling is the king's two-square move, and a pawn reaching the last rank
without an explicit promotion piece promotes to a queen.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import chess

from chessroom.oracle.enums import Color, GameOutcome
from chessroom.oracle.exceptions import IllegalMoveError, MalformedMoveError
from chessroom.oracle.service import GameOracle

if TYPE_CHECKING:
    from chessroom.oracle.types import MoveSpec

DEFAULT_PROMOTION = "q"

_LAST_RANKS = frozenset({0, 7})


class ChessOracle(GameOracle):
    def new_position(self) -> chess.Board:
        return chess.Board()

    def apply_move(self, position: chess.Board, move: MoveSpec) -> str:
        try:
            from_square = chess.parse_square(move.from_square)
            to_square = chess.parse_square(move.to_square)
        except ValueError as e:
            raise MalformedMoveError(move.uci, "unknown square") from e

        promotion = None
        if self._is_promotion(position, from_square, to_square):
            symbol = move.promotion or DEFAULT_PROMOTION
            try:
                promotion = chess.Piece.from_symbol(symbol).piece_type
            except ValueError as e:
                raise MalformedMoveError(move.uci, "unknown promotion piece") from e

        candidate = chess.Move(from_square, to_square, promotion=promotion)
        if not position.is_legal(candidate):
            raise IllegalMoveError(move.uci)

        san = position.san(candidate)
        position.push(candidate)
        return san

    def current_turn(self, position: chess.Board) -> Color:
        return Color.WHITE if position.turn == chess.WHITE else Color.BLACK

    def outcome(self, position: chess.Board) -> GameOutcome | None:
        if position.is_checkmate():
            return GameOutcome.CHECKMATE
        if position.is_stalemate():
            return GameOutcome.STALEMATE
        if position.is_repetition(3):
            return GameOutcome.THREEFOLD_REPETITION
        if position.is_insufficient_material():
            return GameOutcome.INSUFFICIENT_MATERIAL
        if position.is_fifty_moves():
            return GameOutcome.FIFTY_MOVES
        return None

    def serialize(self, position: chess.Board) -> str:
        return position.fen()

    def deserialize(self, data: str) -> chess.Board:
        """Rebuild a board from FEN. Raises ValueError for an invalid FEN string."""
        return chess.Board(data)

    @staticmethod
    def _is_promotion(position: chess.Board, from_square: int, to_square: int) -> bool:
        return (
            position.piece_type_at(from_square) == chess.PAWN and chess.square_rank(to_square) in _LAST_RANKS
        )
