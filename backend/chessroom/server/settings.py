"""Chess server configuration via environment variables."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, EnvSettingsSource

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


def parse_origins(value: str | list[str]) -> list[str]:
    """Parse allowed CORS origins from a list, a JSON array string, or a comma-separated string."""
    if isinstance(value, list):
        origins = value
    elif value.strip().startswith("["):
        try:
            origins = json.loads(value)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON array: {e}") from e
        if not isinstance(origins, list) or not all(isinstance(item, str) for item in origins):
            raise ValueError("CORS origins must be an array of strings")
    else:
        origins = [part.strip() for part in value.split(",") if part.strip()]

    if not origins:
        raise ValueError("At least one CORS origin is required")
    return origins


class RawOriginsEnvSource(EnvSettingsSource):
    """Hand cors_origins to the field validator as the raw env string.

    pydantic-settings would otherwise try to JSON-decode the list field itself
    and reject the comma-separated form.
    """

    def prepare_field_value(
        self,
        field_name: str,
        field: FieldInfo,
        value: Any,  # noqa: ANN401
        value_is_complex: bool,  # noqa: FBT001
    ) -> Any:  # noqa: ANN401
        if field_name == "cors_origins" and isinstance(value, str):
            return value
        return super().prepare_field_value(field_name, field, value, value_is_complex)


class GameServerSettings(BaseSettings):
    model_config = {"env_prefix": "CHESS_"}

    host: str = "0.0.0.0"  # noqa: S104
    port: int = Field(default=3000, ge=1, le=65535)
    log_dir: str | None = None
    cors_origins: list[str] = ["http://localhost:3000"]

    grace_period_seconds: float = Field(default=20, gt=0)
    game_over_reset_seconds: float = Field(default=5, ge=0)
    expiry_reset_seconds: float = Field(default=2, ge=0)
    idle_timeout_seconds: float = Field(default=1800, gt=0)
    idle_sweep_interval_seconds: float = Field(default=60, gt=0)
    assignment_debounce_seconds: float = Field(default=0.1, ge=0)
    notify_invalid_moves: bool = True

    heartbeat_timeout_seconds: float = Field(default=30, gt=0)
    rate_limit_per_second: float = Field(default=10, gt=0)
    rate_limit_burst: int = Field(default=20, ge=1)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_origins(v)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, RawOriginsEnvSource(settings_cls), dotenv_settings, file_secret_settings
