"""Platform-independent locations for magina settings and image data."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from platformdirs import user_cache_dir, user_config_dir, user_data_dir

_DEFAULT_APP_NAME = "magina"
SETTINGS_FILE_NAME = "config.toml"


@dataclass(frozen=True)
class UserDirs:
    app_name: str = _DEFAULT_APP_NAME
    config_dir_override: Path | None = None
    cache_dir_override: Path | None = None
    data_dir_override: Path | None = None

    def config_dir(self) -> Path:
        return (
            self.config_dir_override
            if self.config_dir_override
            else Path(user_config_dir(self.app_name, appauthor=False))
        )

    def cache_dir(self) -> Path:
        return (
            self.cache_dir_override
            if self.cache_dir_override
            else Path(user_cache_dir(self.app_name, appauthor=False))
        )

    def data_dir(self) -> Path:
        return (
            self.data_dir_override
            if self.data_dir_override
            else Path(user_data_dir(self.app_name, appauthor=False))
        )

    def settings_file(self) -> Path:
        return self.config_dir() / SETTINGS_FILE_NAME

    def store_dir(self) -> Path:
        return self.data_dir() / "images"

    def staging_dir(self) -> Path:
        return self.cache_dir() / "staging"
