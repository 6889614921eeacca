import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, EnvSettingsSource, SettingsConfigDict

from xpfetch.core.exceptions import ConfigError

CONFIG_FILE_NAME = ".xpfetch.toml"


def _deep_merge(destination: dict[str, Any], source: Mapping[str, Any]) -> dict[str, Any]:
    """Merge source into destination, with source values overwriting."""
    for key, value in source.items():
        if isinstance(value, Mapping) and key in destination and isinstance(destination[key], Mapping):
            destination[key] = _deep_merge(dict(destination[key]), value)
        else:
            destination[key] = value
    return destination


class FetcherSettings(BaseSettings):
    """Connection settings for the Guillotine backend.

    Supports environment variable overrides with the pattern:
    XPFETCH_KEY (e.g., XPFETCH_CONTENT_API_URL)
    """

    content_api_url: str = Field(..., description="URL of the Guillotine API endpoint")
    app_name: str = Field(..., description="Name of the XP app that defines the content types")
    mode: str = Field(default="production", description="'development' enables XP-only content types in next mode")
    request_timeout: float | None = Field(
        default=None,
        description="Timeout in seconds for Guillotine calls (None waits indefinitely)",
    )

    model_config = SettingsConfigDict(
        extra="ignore",
        env_prefix="XPFETCH_",
        env_nested_delimiter="__",
    )

    @property
    def is_dev_mode(self) -> bool:
        return self.mode == "development"

    @property
    def app_name_underscored(self) -> str:
        return self.app_name.replace(".", "_")

    @property
    def app_name_dashed(self) -> str:
        return self.app_name.replace(".", "-")

    @classmethod
    def load(cls, site_root: Path | None = None, **overrides: Any) -> "FetcherSettings":
        """Loads settings from .xpfetch.toml and environment variables.

        Priority (highest to lowest):
        1. Explicit keyword overrides
        2. Environment variables (XPFETCH_KEY)
        3. Config file (.xpfetch.toml)
        4. Defaults

        Raises:
            ConfigError: If a required value is missing or a value is invalid.

        """
        root_path = site_root if site_root is not None else Path.cwd()
        config_file = root_path / CONFIG_FILE_NAME

        file_settings: dict[str, Any] = {}
        if config_file.is_file():
            with config_file.open("rb") as f:
                file_settings = tomllib.load(f)

        # Init arguments beat env vars in pydantic-settings, so merge by hand
        env_settings = _env_values(cls)
        merged = _deep_merge(_deep_merge(file_settings, env_settings), overrides)

        try:
            return cls.model_validate(merged)
        except ValidationError as exc:
            missing = [".".join(str(p) for p in err["loc"]) for err in exc.errors() if err["type"] == "missing"]
            if missing:
                raise ConfigError(missing) from exc
            raise ConfigError(detail=str(exc)) from exc


def _env_values(settings_cls: type[BaseSettings]) -> dict[str, Any]:
    """Return only the values the environment provides for ``settings_cls``."""
    return EnvSettingsSource(settings_cls)()
