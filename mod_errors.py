"""
Exception hierarchy for the mods manager.

Every failure the manager can recover from derives from ``ModsManagerError``.
Lower layers raise the most specific class they can and wrap foreign
exceptions with ``raise ... from`` so the original cause stays attached.
Precondition violations are plain ``AssertionError`` and are not part of this
hierarchy.
"""

from __future__ import annotations

from pathlib import Path


class ModsManagerError(Exception):
    """Base class for all mods manager errors."""


# ── Fetching ──────────────────────────────────────────────────────────


class FetchError(ModsManagerError):
    """Downloading, extracting or opening a package failed."""


class InvalidUrl(FetchError):
    def __init__(self, url: str):
        super().__init__(f"This URL is not a download URL: {url}")
        self.url = url


class GetFailed(FetchError):
    def __init__(self, url: str, reason: object):
        super().__init__(f"Download of {url} failed: {reason}")
        self.url = url


class DownloadWriteFailed(FetchError):
    def __init__(self, path: Path, reason: object):
        super().__init__(f"Failed to write '{path}': {reason}")
        self.path = path


class ExtractionFailed(FetchError):
    pass


class InvalidPackage(FetchError):
    pass


# ── Archives ──────────────────────────────────────────────────────────


class ArchiveError(ModsManagerError):
    """Extracting an archive failed. ``path`` is the offending path."""

    message = "Archive error"

    def __init__(self, path: Path, reason: object = None):
        text = self.message if reason is None else f"{self.message}: '{reason}'"
        super().__init__(f"{text} ({path})")
        self.path = path


class UnsupportedArchiveType(ArchiveError):
    message = "Unsupported archive type"


class ReadFailed(ArchiveError):
    message = "Reading archive failed"


class CreateDirectoryFailed(ArchiveError):
    message = "Creating directory failed"


class CreateFileFailed(ArchiveError):
    message = "Failed to write file"


class CopyFileFailed(ArchiveError):
    message = "Failed to copy file"


# ── Packages ──────────────────────────────────────────────────────────


class OpenModDirectoryError(ModsManagerError):
    """A single filesystem node could not be read as a package entry."""


class UnsupportedEntryType(OpenModDirectoryError):
    def __init__(self, path: Path):
        super().__init__(f"Unsupported type: {path}")
        self.path = path


class ModNameNotFound(OpenModDirectoryError):
    def __init__(self, path: Path):
        super().__init__(f"Failed to find the mod's name for {path}")
        self.path = path


class ScanPackageError(ModsManagerError):
    def __init__(self, path: Path, reason: object):
        super().__init__(f"Can't read directory '{path}': {reason}")
        self.path = path


# ── Deployment ────────────────────────────────────────────────────────


class InstallError(ModsManagerError):
    pass


class ModNotFound(InstallError):
    def __init__(self, name: str):
        super().__init__(f"Mod '{name}' not found")
        self.name = name


class MoveFailed(InstallError):
    def __init__(self, source: Path, destination: Path, reason: object):
        super().__init__(f"Failed to move '{source}' to '{destination}': {reason}")
        self.source = source
        self.destination = destination


class PreviousNotRestored(MoveFailed):
    """The new copy could not be put in place and the old one could not be put back."""

    def __init__(self, source: Path, destination: Path, reason: object, previous: Path):
        super().__init__(source, destination, reason)
        self.previous = previous


# ── Registry ──────────────────────────────────────────────────────────


class RegistryError(ModsManagerError):
    pass


class RegistryLoadError(RegistryError):
    def __init__(self, path: Path, reason: object):
        super().__init__(f"Could not load mods registry {path}: {reason}")
        self.path = path


class RegistrySaveError(RegistryError):
    def __init__(self, path: Path, reason: object):
        super().__init__(f"Could not save mods registry {path}: {reason}")
        self.path = path


# ── Manager operations ────────────────────────────────────────────────


class ModOperationError(ModsManagerError):
    pass


class UnknownMod(ModOperationError):
    def __init__(self, name: str):
        super().__init__(f"Mod '{name}' is not tracked")
        self.name = name


class AlreadyInstalled(ModOperationError):
    def __init__(self, name: str):
        super().__init__(f"Mod '{name}' is already installed. Uninstall it first.")
        self.name = name


class NotInstalledError(ModOperationError):
    def __init__(self, name: str):
        super().__init__(f"Mod '{name}' is not installed")
        self.name = name


class MissingSource(ModOperationError):
    def __init__(self, name: str):
        super().__init__(f"Mod '{name}' has no download source")
        self.name = name
