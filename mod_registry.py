"""
Persistent catalogue of tracked mods and their install state.

The registry is plain data: install failures are stored as a ``Failed`` state
rather than raised, so the whole registry can be saved and shown as is.
"""

from __future__ import annotations

import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Iterator, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from mod_errors import RegistryLoadError, RegistrySaveError
from mod_source import NoSource, Source
from package_scanner import ModName, PackageEntry

_log = logging.getLogger(__name__)


class NotInstalled(BaseModel):
    state: Literal["none"] = "none"


class Installed(BaseModel):
    state: Literal["installed"] = "installed"
    entry: PackageEntry
    when: datetime

    @classmethod
    def now(cls, entry: PackageEntry) -> Installed:
        return cls(entry=entry, when=datetime.now(timezone.utc))


class Failed(BaseModel):
    state: Literal["failed"] = "failed"
    error: str

    @classmethod
    def from_error(cls, error: object) -> Failed:
        return cls(error=str(error))


Install = Annotated[Union[NotInstalled, Installed, Failed], Field(discriminator="state")]


class ModInfo(BaseModel):
    name: ModName
    source: Source = Field(default_factory=NoSource)
    install: Install = Field(default_factory=NotInstalled)

    @property
    def is_installed(self) -> bool:
        return isinstance(self.install, Installed)


class Registry(BaseModel):
    """Mods keyed by name. Iteration is ordered by name."""

    mods: dict[ModName, ModInfo] = Field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.mods)

    def __contains__(self, name: object) -> bool:
        return name in self.mods

    def iter(self) -> Iterator[ModInfo]:
        for name in sorted(self.mods):
            yield self.mods[name]

    def add(self, name: ModName, source: Source):
        """Track a new mod. An already tracked name keeps its first source."""
        if name in self.mods:
            return
        self.mods[name] = ModInfo(name=name, source=source)

    def remove(self, name: ModName) -> Optional[ModInfo]:
        return self.mods.pop(name, None)

    def get(self, name: ModName) -> Optional[ModInfo]:
        return self.mods.get(name)

    def get_installed(self) -> Optional[ModInfo]:
        return next((info for info in self.iter() if info.is_installed), None)

    def set_install(self, name: ModName, install: Install):
        # The mod may have been removed while its install was running.
        info = self.mods.get(name)
        if info is not None:
            info.install = install

    # ── Persistence ───────────────────────────────────────────────────

    @classmethod
    def load(cls, path: str | Path) -> Registry:
        """Read a registry file. A missing file is an empty registry."""
        path = Path(path)
        if not path.exists():
            return cls()
        try:
            registry = cls.model_validate_json(path.read_bytes())
        except (OSError, ValidationError) as exc:
            raise RegistryLoadError(path, exc) from exc
        _log.info("Loaded mods registry %s: %d mod(s)", path, len(registry))
        return registry

    def save(self, path: str | Path):
        """Write the registry through a temporary sibling and rename it into place."""
        path = Path(path)
        temp_path = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                delete=False,
                dir=path.parent,
                prefix=".registry-",
                suffix=".tmp",
            ) as f:
                temp_path = Path(f.name)
                f.write(self.model_dump_json(indent=2))
            os.replace(temp_path, path)
        except OSError as exc:
            if temp_path is not None:
                temp_path.unlink(missing_ok=True)
            raise RegistrySaveError(path, exc) from exc
