from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from chessroom.server.settings import GameServerSettings


class SessionConfig(BaseModel):
    """Timing and reporting knobs for the session state machine."""

    grace_period_seconds: float = Field(default=20, gt=0)
    game_over_reset_seconds: float = Field(default=5, ge=0)
    expiry_reset_seconds: float = Field(default=2, ge=0)
    idle_timeout_seconds: float = Field(default=30 * 60, gt=0)
    idle_sweep_interval_seconds: float = Field(default=60, gt=0)
    assignment_debounce_seconds: float = Field(default=0.1, ge=0)
    notify_invalid_moves: bool = True

    @classmethod
    def from_settings(cls, settings: GameServerSettings) -> SessionConfig:
        """Build SessionConfig from server settings."""
        return cls(
            grace_period_seconds=settings.grace_period_seconds,
            game_over_reset_seconds=settings.game_over_reset_seconds,
            expiry_reset_seconds=settings.expiry_reset_seconds,
            idle_timeout_seconds=settings.idle_timeout_seconds,
            idle_sweep_interval_seconds=settings.idle_sweep_interval_seconds,
            assignment_debounce_seconds=settings.assignment_debounce_seconds,
            notify_invalid_moves=settings.notify_invalid_moves,
        )
