from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from cardloop.domain.constants import NEW_CARD_LIMIT


def config_files() -> list[Path]:
    return [
        Path.home() / ".config/cardloop/config.toml",
        Path.home() / ".cardloop.toml",
    ]


class AppConfig(BaseSettings):
    """
    Configuration model for cardloop.
    Supports loading from:
    1. Environment variables (CARDLOOP_*)
    2. Config file (~/.config/cardloop/config.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="CARDLOOP_",
        extra="ignore",
    )

    # Paths
    db_path: Path = Field(default_factory=lambda: Path.home() / ".config/cardloop/cardloop.db")
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".config/cardloop/logs")

    # Session
    new_card_limit: int = Field(default=NEW_CARD_LIMIT, ge=0)
    mode: Literal["input", "output"] = "input"

    # Output
    verbose: int = 1

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # Find the first existing file
        toml_file = None
        for f in config_files():
            if f.exists():
                toml_file = f
                break

        # Earlier sources win: CLI overrides, then env, then TOML.
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (
            init_settings,
            env_settings,
        )

    @field_validator("db_path", "log_dir", mode="before")
    @classmethod
    def expand_path(cls, v: Any) -> Path:
        if isinstance(v, str) and v == ":memory:":
            return Path(v)
        return Path(v).expanduser()


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/cardloop/config.toml (if exists)
    3. Environment variables (CARDLOOP_*)
    4. cli_overrides (passed from Typer)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
