"""Party server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from party.logic.settings import DEFAULT_GUESS_SECONDS
from shared.validators import StringListEnvSettingsSource, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class PartyServerSettings(BaseSettings):
    model_config = {"env_prefix": "PARTY_"}

    log_dir: str = Field(default="backend/logs/party", min_length=1)
    cors_origins: list[str] = ["http://localhost:8712"]
    # Empty keeps sessions in memory for the lifetime of the process.
    database_path: str = ""
    public_base_url: str = Field(default="http://localhost:8712", min_length=1)
    guess_timer_seconds: float = Field(default=DEFAULT_GUESS_SECONDS, gt=0)
    content_path: str | None = None
    max_sessions: int = Field(default=1000, ge=1)
    # Sessions older than this are deleted; 0 keeps them forever.
    session_ttl_seconds: int = Field(default=86400, ge=0)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, StringListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings
