"""
Archive extraction for downloaded mod packages.

The format is picked from the file extension alone. Zip archives are streamed
member by member so unsafe member names can be skipped individually; 7z and
rar archives are handed whole to py7zr and rarfile.
"""

from __future__ import annotations

import logging
import os
import shutil
import zipfile
import zlib
from pathlib import Path, PurePosixPath, PureWindowsPath

import py7zr
import rarfile

from mod_errors import (
    CopyFileFailed,
    CreateDirectoryFailed,
    CreateFileFailed,
    ReadFailed,
    UnsupportedArchiveType,
)

_log = logging.getLogger(__name__)

# Lets a bundled UnRAR binary be used instead of the one on PATH.
_unrar = os.environ.get("MODS_MANAGER_UNRAR_TOOL")
if _unrar:
    rarfile.UNRAR_TOOL = _unrar

SUPPORTED_EXTENSIONS = {".zip", ".7z", ".rar"}


def extract_archive(archive_path: str | Path, destination: str | Path) -> Path:
    """Extract ``archive_path`` into ``destination`` and return ``destination``.

    Raises ``UnsupportedArchiveType`` for anything that is not a .zip, .7z or
    .rar file, before anything is written.
    """
    archive_path = Path(archive_path)
    destination = Path(destination)
    ext = archive_path.suffix.lower()

    if ext == ".zip":
        _extract_zip(archive_path, destination)
    elif ext == ".7z":
        _extract_7z(archive_path, destination)
    elif ext == ".rar":
        _extract_rar(archive_path, destination)
    else:
        raise UnsupportedArchiveType(archive_path)

    return destination


def enclosed_name(member_name: str) -> PurePosixPath | None:
    """Return the member's path relative to the extraction root.

    ``None`` means the name would land outside the root (absolute path, drive
    letter, too many ``..``) or names the root itself.
    """
    if "\0" in member_name:
        return None

    normalized = member_name.replace("\\", "/")
    windows = PureWindowsPath(member_name)
    if normalized.startswith("/") or windows.drive or windows.root:
        return None

    parts: list[str] = []
    for part in normalized.split("/"):
        if part in ("", "."):
            continue
        if part == "..":
            if not parts:
                return None
            parts.pop()
            continue
        parts.append(part)

    if not parts:
        return None
    return PurePosixPath(*parts)


def _make_dirs(path: Path):
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise CreateDirectoryFailed(path, exc) from exc


def _extract_zip(archive_path: Path, destination: Path):
    try:
        zf = zipfile.ZipFile(archive_path, "r")
    except (OSError, zipfile.BadZipFile) as exc:
        raise ReadFailed(archive_path, exc) from exc

    with zf:
        _make_dirs(destination)
        for info in zf.infolist():
            relative = enclosed_name(info.filename)
            if relative is None:
                _log.warning(
                    "Skipping member %r of %s: path escapes the destination",
                    info.filename,
                    archive_path.name,
                )
                continue

            target = destination.joinpath(*relative.parts)
            if info.is_dir():
                _make_dirs(target)
                continue

            _make_dirs(target.parent)
            try:
                out = open(target, "wb")
            except OSError as exc:
                raise CreateFileFailed(target, exc) from exc

            with out:
                try:
                    with zf.open(info) as src:
                        shutil.copyfileobj(src, out)
                except (OSError, EOFError, zipfile.BadZipFile, zlib.error, RuntimeError) as exc:
                    raise CopyFileFailed(target, exc) from exc


def _extract_7z(archive_path: Path, destination: Path):
    try:
        with py7zr.SevenZipFile(archive_path, "r") as sz:
            sz.extractall(path=destination)
    except Exception as exc:
        raise ReadFailed(archive_path, exc) from exc


def _extract_rar(archive_path: Path, destination: Path):
    try:
        with rarfile.RarFile(archive_path, "r") as rf:
            rf.extractall(path=str(destination))
    except Exception as exc:
        raise ReadFailed(archive_path, exc) from exc
