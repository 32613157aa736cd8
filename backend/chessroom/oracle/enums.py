"""
String enum definitions for chess concepts shared across layers.
"""

from __future__ import annotations

from enum import StrEnum


class Color(StrEnum):
    """Side to move, in FEN notation."""

    WHITE = "w"
    BLACK = "b"

    @property
    def opponent(self) -> Color:
        return Color.BLACK if self is Color.WHITE else Color.WHITE

    @property
    def label(self) -> str:
        return "White" if self is Color.WHITE else "Black"


class GameOutcome(StrEnum):
    """Terminal conditions, listed in reporting priority order."""

    CHECKMATE = "checkmate"
    STALEMATE = "stalemate"
    THREEFOLD_REPETITION = "threefold_repetition"
    INSUFFICIENT_MATERIAL = "insufficient_material"
    FIFTY_MOVES = "fifty_moves"
