"""
Installing mods into, and removing them from, the managed mods directory.

``install`` never raises for an ordinary failure: it returns an ``Install``
state so the registry can store the outcome directly. ``uninstall`` raises.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiohttp

from mod_errors import ModNotFound, ModsManagerError, MoveFailed, PreviousNotRestored
from mod_registry import Failed, Install, Installed
from mod_source import Source, fetch_package
from package_scanner import ModName, PackageEntry, PackageEntryKind

_log = logging.getLogger(__name__)

STAGING_PREFIX = ".staging-"


async def install(
    source: Source,
    name: ModName,
    mods_directory: str | Path,
    session: Optional[aiohttp.ClientSession] = None,
) -> Install:
    """Fetch ``source`` and deploy the mod called ``name`` into ``mods_directory``.

    Returns ``Installed`` with the entry as found at its final location, or
    ``Failed`` carrying the error message.
    """
    try:
        entry = await _install(source, name, Path(mods_directory), session)
    except (ModsManagerError, OSError) as exc:
        _log.warning("Installing mod '%s' failed: %s", name, exc)
        return Failed.from_error(exc)

    _log.info("Installed mod '%s' at %s", name, entry.path)
    return Installed.now(entry)


@asynccontextmanager
async def scoped_temp_directory(prefix: str) -> AsyncIterator[Path]:
    """A fresh temporary directory, removed recursively on every exit path."""
    path = Path(await asyncio.to_thread(tempfile.mkdtemp, prefix=prefix))
    try:
        yield path
    finally:
        await asyncio.to_thread(shutil.rmtree, path, ignore_errors=True)


async def _install(
    source: Source,
    name: ModName,
    mods_directory: Path,
    session: Optional[aiohttp.ClientSession],
) -> PackageEntry:
    await asyncio.to_thread(mods_directory.mkdir, parents=True, exist_ok=True)

    async with scoped_temp_directory(f"install_{name}_") as tmpdir:
        package = await fetch_package(source, tmpdir, session=session)
        entry = package.find_mod(name)
        if entry is None:
            raise ModNotFound(name)

        destination = mods_directory / entry.path.name
        await asyncio.to_thread(_deploy, entry, destination)

    return await asyncio.to_thread(PackageEntry.from_path, destination)


def _deploy(entry: PackageEntry, destination: Path):
    """Put ``entry`` at ``destination``, replacing whatever is there.

    The entry is first staged in a hidden directory next to the destination,
    so the only step touching ``destination`` is a rename on the same volume.
    The staging directory is kept if it still holds the only copy of the
    previously installed mod.
    """
    staging = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=destination.parent))
    keep_staging = False
    try:
        staged = staging / destination.name
        try:
            if entry.kind is PackageEntryKind.DIRECTORY:
                shutil.move(str(entry.path), str(staged))
            else:
                shutil.copy2(entry.path, staged)
        except OSError as exc:
            raise MoveFailed(entry.path, destination, exc) from exc

        _replace(staged, destination)
    except PreviousNotRestored:
        keep_staging = True
        raise
    finally:
        if not keep_staging:
            shutil.rmtree(staging, ignore_errors=True)


def _replace(staged: Path, destination: Path):
    previous = None
    if destination.exists() or destination.is_symlink():
        previous = staged.with_name(staged.name + ".previous")
        try:
            os.replace(destination, previous)
        except OSError as exc:
            raise MoveFailed(staged, destination, exc) from exc

    try:
        os.replace(staged, destination)
    except OSError as exc:
        if previous is not None:
            try:
                os.replace(previous, destination)
            except OSError as restore_exc:
                _log.error(
                    "Could not put back %s (%s); the previous copy is kept at %s",
                    destination,
                    restore_exc,
                    previous,
                )
                raise PreviousNotRestored(staged, destination, exc, previous) from exc
        raise MoveFailed(staged, destination, exc) from exc


def is_inside(path: str | Path, directory: str | Path) -> bool:
    """True if ``path`` lies strictly below ``directory``.

    The last component of ``path`` is not resolved, so a symlink inside the
    directory counts as inside even if it points elsewhere.
    """
    path = Path(path)
    if path.name in ("", ".", ".."):
        return False
    candidate = path.parent.resolve() / path.name
    return Path(directory).resolve() in candidate.parents


async def uninstall(mod_path: str | Path, mods_directory: str | Path):
    """Delete an installed mod. ``mod_path`` must be inside ``mods_directory``."""
    mod_path = Path(mod_path)
    # Checked explicitly so the guard survives ``python -O``.
    if not is_inside(mod_path, mods_directory):
        raise AssertionError(f"Refusing to remove {mod_path}: not inside {mods_directory}")

    if mod_path.is_symlink() or mod_path.is_file():
        await asyncio.to_thread(mod_path.unlink)
    elif mod_path.is_dir():
        await asyncio.to_thread(shutil.rmtree, mod_path)
    elif not mod_path.exists():
        raise FileNotFoundError(f"Installed mod not found: {mod_path}")
    else:
        raise AssertionError(f"Unsupported mod type: {mod_path}")

    _log.info("Removed %s", mod_path)
