"""Session-level move rejections.

Unlike IllegalMoveError these are never reported to the client: a move sent
out of turn or before the game starts is dropped without a reply.
"""


class MoveRejectedError(Exception):
    """Base class for silently rejected move submissions."""


class GameNotStartedError(MoveRejectedError):
    """Move submitted while the session is not in progress."""


class NotYourTurnError(MoveRejectedError):
    """Move submitted by a connection that does not hold the seat to move."""
