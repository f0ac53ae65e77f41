"""
Package sources and fetching.

A ``Source`` says where a mod package comes from. Fetching downloads the
archive into a working directory, extracts it next to the download and scans
the result for mods.
"""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path, PurePosixPath
from typing import Annotated, Literal, Optional, Union
from urllib.parse import unquote

import aiohttp
from aiohttp import hdrs
from pydantic import BaseModel, Field

from archive_extractor import extract_archive
from mod_errors import (
    ArchiveError,
    DownloadWriteFailed,
    ExtractionFailed,
    GetFailed,
    InvalidPackage,
    InvalidUrl,
    ScanPackageError,
)
from package_scanner import Package

_log = logging.getLogger(__name__)

_FILENAME_PARAM_RE = re.compile(r"filename\*?\s*=\s*([^;]+)", re.IGNORECASE)


class NoSource(BaseModel):
    """A mod found on disk that was not installed from a known location."""

    kind: Literal["none"] = "none"


class DownloadUrl(BaseModel):
    kind: Literal["download_url"] = "download_url"
    url: str


Source = Annotated[Union[NoSource, DownloadUrl], Field(discriminator="kind")]


# ── File name derivation ──────────────────────────────────────────────


def extract_file_name(url: str) -> Optional[str]:
    """Return the last path segment of ``url``, cut at ``?``.

    ``None`` if the URL ends with ``/`` or has no ``/`` at all.
    """
    position = url.rfind("/")
    if position == -1 or position + 1 >= len(url):
        return None
    return url[position + 1 :].split("?", 1)[0]


def has_file_extension(file_name: str) -> bool:
    return bool(PurePosixPath(file_name).suffix)


def content_disposition_file_name(value: str) -> str:
    """Pull the file name out of a Content-Disposition header value.

    Falls back to the raw value when there is no ``filename`` parameter.
    """
    match = _FILENAME_PARAM_RE.search(value)
    if not match:
        return value.strip()
    data = match.group(1).strip()
    if data.lower().startswith("utf-8''"):
        return unquote(data[7:], "utf-8")
    return data.strip("\"'")


def get_file_name(
    url: str, response_url: str, content_disposition: Optional[str] = None
) -> Optional[str]:
    """Pick the archive's file name.

    Tried in order: the URL given by the user, the URL the response came
    from (after redirects), then the Content-Disposition header. The first
    candidate that has an extension wins.
    """
    candidates = [extract_file_name(url), extract_file_name(response_url)]
    if content_disposition:
        candidates.append(content_disposition_file_name(content_disposition))

    for candidate in candidates:
        if not candidate:
            continue
        # Never let a server-provided name climb out of the target directory.
        name = PurePosixPath(candidate.replace("\\", "/")).name
        if name and has_file_extension(name):
            return name
    return None


# ── Download ──────────────────────────────────────────────────────────


async def download_url(
    url: str,
    directory: str | Path,
    session: Optional[aiohttp.ClientSession] = None,
) -> Path:
    """Download ``url`` into ``directory`` and return the written file."""
    if session is None:
        async with aiohttp.ClientSession() as own_session:
            return await _download(own_session, url, Path(directory))
    return await _download(session, url, Path(directory))


async def _download(session: aiohttp.ClientSession, url: str, directory: Path) -> Path:
    try:
        async with session.get(url) as response:
            response.raise_for_status()
            file_name = get_file_name(
                url,
                response.url.path,
                response.headers.get(hdrs.CONTENT_DISPOSITION),
            )
            if file_name is None:
                raise InvalidUrl(url)
            content = await response.read()
    except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
        raise GetFailed(url, exc) from exc

    archive_path = directory / file_name
    try:
        await asyncio.to_thread(archive_path.write_bytes, content)
    except OSError as exc:
        raise DownloadWriteFailed(archive_path, exc) from exc

    _log.info("Downloaded %s (%d bytes) to %s", url, len(content), archive_path)
    return archive_path


# ── Fetch ─────────────────────────────────────────────────────────────


async def fetch_package(
    source: Source,
    directory: str | Path,
    session: Optional[aiohttp.ClientSession] = None,
) -> Package:
    """Download, extract and scan the package described by ``source``.

    ``directory`` receives both the archive and its extracted content.
    """
    assert isinstance(source, DownloadUrl), "Trying to fetch a package without source"

    directory = Path(directory)
    archive_path = await download_url(source.url, directory, session=session)

    try:
        root_directory = await asyncio.to_thread(extract_archive, archive_path, directory)
    except ArchiveError as exc:
        raise ExtractionFailed(str(exc)) from exc

    try:
        return await asyncio.to_thread(Package.open, root_directory)
    except ScanPackageError as exc:
        raise InvalidPackage(str(exc)) from exc
