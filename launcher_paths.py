"""Locations used by the mods manager."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

APPLICATION_NAME = "ModsManager"
CONFIG_DIR_ENV = "MODS_MANAGER_CONFIG_DIR"
GAME_DIR_ENV = "MODS_MANAGER_GAME_DIR"
REGISTRY_FILENAME = "mods.json"


def default_configuration_directory() -> Path:
    appdata = os.environ.get("APPDATA")
    if appdata:
        return Path(appdata) / APPLICATION_NAME
    return Path.home() / ".config" / APPLICATION_NAME


@dataclass
class LauncherPaths:
    configuration_directory: Path
    game_directory: Optional[Path] = None

    @classmethod
    def from_environment(
        cls,
        config_dir: str | Path | None = None,
        game_dir: str | Path | None = None,
    ) -> LauncherPaths:
        """Explicit values win over environment variables, which win over defaults."""
        config_dir = config_dir or os.environ.get(CONFIG_DIR_ENV)
        game_dir = game_dir or os.environ.get(GAME_DIR_ENV)
        return cls(
            configuration_directory=(
                Path(config_dir) if config_dir else default_configuration_directory()
            ),
            game_directory=Path(game_dir) if game_dir else None,
        )

    @property
    def mods_directory(self) -> Optional[Path]:
        if self.game_directory is None:
            return None
        return self.game_directory / "tf" / "custom"

    @property
    def registry_file(self) -> Path:
        return self.configuration_directory / REGISTRY_FILENAME

    @property
    def log_directory(self) -> Path:
        return self.configuration_directory / "logs"
