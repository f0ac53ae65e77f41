"""
Discovery of installable mods inside an extracted package.

A package usually holds a single mod, but it can hold several. A mod is either
a directory carrying an ``info.vdf`` descriptor or a single ``.vpk`` file.

The mod's name is the name of the directory holding ``info.vdf`` (or the stem
of the .vpk file). The descriptor's content is never read: real packages often
carry a stale or wrong name in there.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator

from pydantic import BaseModel

from mod_errors import (
    ModNameNotFound,
    OpenModDirectoryError,
    ScanPackageError,
    UnsupportedEntryType,
)

_log = logging.getLogger(__name__)

INFO_VDF_FILE_NAME = "info.vdf"
VALVE_PACKAGE_FILE_EXTENSION = ".vpk"

ModName = str


class PackageEntryKind(str, Enum):
    DIRECTORY = "directory"
    SINGLE_FILE = "single_file"


class PackageEntry(BaseModel):
    """One installable mod found on disk."""

    path: Path
    name: ModName
    kind: PackageEntryKind

    @classmethod
    def from_path(cls, path: str | Path) -> PackageEntry:
        """Interpret a single filesystem node as a mod.

        Raises ``UnsupportedEntryType`` if the node is neither a directory
        holding ``info.vdf`` nor a ``.vpk`` file.
        """
        path = Path(path)

        if path.is_dir() and (path / INFO_VDF_FILE_NAME).is_file():
            return cls._named(path, path.name, PackageEntryKind.DIRECTORY)
        if path.is_file() and path.suffix.lower() == VALVE_PACKAGE_FILE_EXTENSION:
            return cls._named(path, path.stem, PackageEntryKind.SINGLE_FILE)

        raise UnsupportedEntryType(path)

    @classmethod
    def _named(cls, path: Path, name: str, kind: PackageEntryKind) -> PackageEntry:
        if not name:
            raise ModNameNotFound(path)
        return cls(path=path, name=name, kind=kind)


@dataclass
class Package:
    """An extracted package and the mods found in it."""

    root_directory: Path
    entries: list[PackageEntry] = field(default_factory=list)

    @classmethod
    def open(cls, root_directory: str | Path) -> Package:
        root_directory = Path(root_directory)
        return cls(root_directory=root_directory, entries=cls._scan(root_directory))

    def mod_names(self) -> list[ModName]:
        return [entry.name for entry in self.entries]

    def find_mod(self, name: ModName) -> PackageEntry | None:
        return next((entry for entry in self.entries if entry.name == name), None)

    @staticmethod
    def _scan(root_directory: Path) -> list[PackageEntry]:
        if not root_directory.is_dir():
            raise ScanPackageError(root_directory, "not a directory")

        entries = []
        for candidate in _walk(root_directory):
            try:
                entries.append(PackageEntry.from_path(candidate))
            except OpenModDirectoryError:
                continue

        _log.debug(
            "Scanned %s: %d mod(s) %s",
            root_directory,
            len(entries),
            [e.name for e in entries],
        )
        return entries


def _walk(root_directory: Path) -> Iterator[Path]:
    """Yield every node below ``root_directory``, the root included.

    Only a failure to list the root itself is raised; unreadable
    subdirectories are skipped.
    """

    def on_error(exc: OSError):
        if exc.filename is not None and Path(exc.filename) == root_directory:
            raise ScanPackageError(root_directory, exc) from exc
        _log.warning("Skipping unreadable directory %s: %s", exc.filename, exc)

    for dirpath, dirnames, filenames in os.walk(root_directory, onerror=on_error):
        dirnames.sort()
        current = Path(dirpath)
        yield current
        for name in sorted(filenames):
            yield current / name


def search_mod_install(mods_directory: str | Path) -> list[PackageEntry]:
    """Find the mods already deployed directly inside ``mods_directory``."""
    mods_directory = Path(mods_directory)
    if not mods_directory.exists():
        return []

    try:
        children = sorted(mods_directory.iterdir())
    except OSError as exc:
        raise ScanPackageError(mods_directory, exc) from exc

    found = []
    for child in children:
        try:
            found.append(PackageEntry.from_path(child))
        except OpenModDirectoryError:
            continue
    return found
