from dataclasses import dataclass
from typing import Any

from chessroom.messaging.types import BoardStateMessage, PlayersInfoMessage
from chessroom.oracle.enums import Color
from chessroom.oracle.service import GameOracle
from chessroom.session.broadcast import Broadcaster
from chessroom.session.config import SessionConfig
from chessroom.session.models import SessionState
from chessroom.session.timer_manager import TimerManager


@dataclass
class SessionContext:
    """Everything a session handler may touch, owned by SessionManager and shared with its helpers."""

    state: SessionState
    oracle: GameOracle
    broadcaster: Broadcaster
    timers: TimerManager
    config: SessionConfig

    def board_state_message(self) -> dict[str, Any]:
        return BoardStateMessage(fen=self.oracle.serialize(self.state.position)).model_dump()

    def players_info_message(self) -> dict[str, Any]:
        return PlayersInfoMessage(
            white=self._seat_label(Color.WHITE),
            black=self._seat_label(Color.BLACK),
            started=self.state.started,
        ).model_dump()

    def _seat_label(self, color: Color) -> str | None:
        if self.state.seats[color] is None:
            return None
        return self.state.display_names[color] or color.label
