"""
Mods Manager - Core Logic

Keeps the registry of tracked mods in step with install/uninstall operations
on the managed mods directory.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

import aiohttp

from deployment import install, scoped_temp_directory, uninstall
from mod_errors import (
    AlreadyInstalled,
    MissingSource,
    NotInstalledError,
    UnknownMod,
)
from mod_registry import Install, Installed, ModInfo, NotInstalled, Registry
from mod_source import DownloadUrl, NoSource, Source, fetch_package
from package_scanner import ModName, search_mod_install

_log = logging.getLogger(__name__)


class ModManager:
    """
    Main mods manager controller.

    Workflow:
        1. load() to read the registry
        2. add_mods() to track the mods offered by a download URL
        3. reconcile_installed() to pick up mods already in the mods directory
        4. install_mod() / uninstall_mod() / remove_mod() to manage mods

    Every mutating call saves the registry.
    """

    def __init__(
        self,
        registry_path: str | Path,
        mods_directory: str | Path,
        log_callback: Optional[Callable[[str], None]] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.registry_path = Path(registry_path)
        self.mods_directory = Path(mods_directory)
        self._log_cb = log_callback or _log.info
        self._session = session

        self.registry = Registry()

    # ── Logging ───────────────────────────────────────────────────────

    def log(self, msg: str):
        self._log_cb(msg)

    # ── Registry ──────────────────────────────────────────────────────

    def load(self) -> Registry:
        self.registry = Registry.load(self.registry_path)
        return self.registry

    def save(self):
        self.registry.save(self.registry_path)

    def _require(self, name: ModName) -> ModInfo:
        info = self.registry.get(name)
        if info is None:
            raise UnknownMod(name)
        return info

    # ── Adding ────────────────────────────────────────────────────────

    async def scan_package(self, source: Source) -> list[ModName]:
        """List the mods offered by ``source`` without installing anything."""
        async with scoped_temp_directory("fetch_package_name_") as tmpdir:
            package = await fetch_package(source, tmpdir, session=self._session)
            return package.mod_names()

    async def add_mods(self, source: Source) -> list[ModName]:
        names = await self.scan_package(source)
        for name in names:
            self.registry.add(name, source)
        self.save()

        self.log(f"Found {len(names)} mod(s): {names}")
        return names

    def reconcile_installed(self) -> list[ModName]:
        """Record mods present in the mods directory that the registry missed.

        Unknown mods are tracked without a source. Known installed mods whose
        location changed get their entry refreshed.
        """
        touched = []
        for entry in search_mod_install(self.mods_directory):
            info = self.registry.get(entry.name)
            if info is None:
                self.registry.add(entry.name, NoSource())
            elif not isinstance(info.install, Installed) or info.install.entry.path == entry.path:
                continue

            self.registry.set_install(entry.name, Installed.now(entry))
            touched.append(entry.name)
            self.log(f"  Found installed mod '{entry.name}' at {entry.path}")

        if touched:
            self.save()
        return touched

    # ── Install / Uninstall ───────────────────────────────────────────

    async def install_mod(self, name: ModName) -> Install:
        info = self._require(name)
        if info.is_installed:
            raise AlreadyInstalled(name)
        if not isinstance(info.source, DownloadUrl):
            raise MissingSource(name)

        self.log(f"Installing '{name}' from {info.source.url}...")
        result = await install(info.source, name, self.mods_directory, session=self._session)
        self.registry.set_install(name, result)
        self.save()

        if isinstance(result, Installed):
            self.log(f"  Successfully installed '{name}'")
        else:
            self.log(f"  Installation of '{name}' failed: {result.error}")
        return result

    async def uninstall_mod(self, name: ModName):
        info = self._require(name)
        if not isinstance(info.install, Installed):
            raise NotInstalledError(name)

        self.log(f"Uninstalling '{name}'...")
        await uninstall(info.install.entry.path, self.mods_directory)
        self.registry.set_install(name, NotInstalled())
        self.save()
        self.log(f"  Successfully uninstalled '{name}'")

    async def remove_mod(self, name: ModName) -> Optional[ModInfo]:
        """Stop tracking ``name``, deleting its files if it is installed."""
        info = self.registry.remove(name)
        if info is None:
            return None
        self.save()

        if isinstance(info.install, Installed):
            await uninstall(info.install.entry.path, self.mods_directory)
        self.log(f"Removed '{name}'")
        return info
