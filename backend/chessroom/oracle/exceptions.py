"""Typed domain exceptions for chess rule violations.

Rule violations detected by the oracle use subclasses of GameRuleError
rather than raw ValueError, so the session layer can catch and convert
them to an ``invalidMove`` reply at a single boundary.
"""


class GameRuleError(Exception):
    """Base exception for rule violations reported by the oracle."""


class IllegalMoveError(GameRuleError):
    """Move is not legal in the current position."""

    def __init__(self, move: str, reason: str = "illegal move") -> None:
        self.move = move
        self.reason = reason
        super().__init__(f"{reason}: {move}")


class MalformedMoveError(IllegalMoveError):
    """Move payload cannot be interpreted (bad square or promotion piece).

    Handled exactly like an illegal move.
    """
