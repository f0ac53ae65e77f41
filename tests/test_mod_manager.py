"""
Tests for ModManager: registry bookkeeping around install/uninstall.
"""

import asyncio
import tempfile

import pytest

from mod_errors import AlreadyInstalled, MissingSource, NotInstalledError, UnknownMod
from mod_manager import ModManager
from mod_registry import Failed, Installed, NotInstalled, Registry
from mod_source import DownloadUrl, NoSource
from tests.conftest import HUD_ZIP, serve, write_vdf, zip_bytes


# ── helpers ──────────────────────────────────────────────────────────────────

def make_manager(tmp_path, mods_dir):
    return ModManager(tmp_path / "config" / "mods.json", mods_dir, log_callback=lambda _: None)


def with_server(routes, body):
    """Run ``body(url_for)`` inside a local HTTP server."""

    async def scenario():
        async with serve(routes) as server:
            return await body(lambda path: DownloadUrl(url=str(server.make_url(path))))

    return asyncio.run(scenario())


MULTI_ZIP = zip_bytes({"pack/d0/info.vdf": "", "pack/d1/info.vdf": ""})


# ── adding ───────────────────────────────────────────────────────────────────

def test_scan_package_lists_names(tmp_path, mods_dir):
    manager = make_manager(tmp_path, mods_dir)

    async def body(url_for):
        return await manager.scan_package(url_for("/pack.zip"))

    names = with_server({"/pack.zip": MULTI_ZIP}, body)

    assert names == ["d0", "d1"]
    assert len(manager.registry) == 0


def test_scan_package_removes_its_temp_directory(tmp_path, mods_dir, monkeypatch):
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(scratch))
    manager = make_manager(tmp_path, mods_dir)

    async def body(url_for):
        return await manager.scan_package(url_for("/pack.zip"))

    assert with_server({"/pack.zip": MULTI_ZIP}, body) == ["d0", "d1"]
    assert list(scratch.iterdir()) == []


def test_add_mods_tracks_and_saves(tmp_path, mods_dir):
    manager = make_manager(tmp_path, mods_dir)

    async def body(url_for):
        return await manager.add_mods(url_for("/pack.zip"))

    names = with_server({"/pack.zip": MULTI_ZIP}, body)

    assert names == ["d0", "d1"]
    saved = Registry.load(manager.registry_path)
    assert [info.name for info in saved.iter()] == ["d0", "d1"]
    assert all(isinstance(info.install, NotInstalled) for info in saved.iter())


# ── install / uninstall ──────────────────────────────────────────────────────

def test_install_and_uninstall_mod(tmp_path, mods_dir):
    manager = make_manager(tmp_path, mods_dir)

    async def body(url_for):
        manager.registry.add("x", url_for("/hud.zip"))
        result = await manager.install_mod("x")
        assert isinstance(result, Installed), result
        assert (mods_dir / "x").is_dir()
        assert Registry.load(manager.registry_path).get("x").is_installed

        await manager.uninstall_mod("x")

    with_server({"/hud.zip": zip_bytes(HUD_ZIP)}, body)

    assert not (mods_dir / "x").exists()
    assert isinstance(manager.registry.get("x").install, NotInstalled)
    assert isinstance(Registry.load(manager.registry_path).get("x").install, NotInstalled)


def test_failed_install_is_recorded_and_retryable(tmp_path, mods_dir):
    manager = make_manager(tmp_path, mods_dir)
    routes = {"/hud.zip": zip_bytes(HUD_ZIP), "/other.zip": zip_bytes({"y/info.vdf": ""})}

    async def body(url_for):
        manager.registry.add("x", url_for("/other.zip"))
        first = await manager.install_mod("x")
        assert isinstance(first, Failed)
        assert manager.registry.get("x").install == first

        # Retry after the source has been fixed.
        manager.registry.get("x").source = url_for("/hud.zip")
        return await manager.install_mod("x")

    result = with_server(routes, body)

    assert isinstance(result, Installed)
    assert manager.registry.get("x").install == result


def test_install_guards(tmp_path, mods_dir):
    manager = make_manager(tmp_path, mods_dir)
    write_vdf(mods_dir / "local")
    manager.reconcile_installed()
    manager.registry.add("nosource", NoSource())

    with pytest.raises(UnknownMod):
        asyncio.run(manager.install_mod("ghost"))
    with pytest.raises(AlreadyInstalled):
        asyncio.run(manager.install_mod("local"))
    with pytest.raises(MissingSource):
        asyncio.run(manager.install_mod("nosource"))
    with pytest.raises(NotInstalledError):
        asyncio.run(manager.uninstall_mod("nosource"))


# ── remove ───────────────────────────────────────────────────────────────────

def test_remove_installed_mod_deletes_files(tmp_path, mods_dir):
    manager = make_manager(tmp_path, mods_dir)
    write_vdf(mods_dir / "local")
    manager.reconcile_installed()

    info = asyncio.run(manager.remove_mod("local"))

    assert info.name == "local"
    assert not (mods_dir / "local").exists()
    assert "local" not in Registry.load(manager.registry_path)


def test_remove_unknown_mod(tmp_path, mods_dir):
    manager = make_manager(tmp_path, mods_dir)

    assert asyncio.run(manager.remove_mod("ghost")) is None


# ── reconcile ────────────────────────────────────────────────────────────────

def test_reconcile_adds_unknown_installs(tmp_path, mods_dir):
    manager = make_manager(tmp_path, mods_dir)
    write_vdf(mods_dir / "ahud")
    (mods_dir / "minhud.vpk").write_bytes(b"VPK")

    touched = manager.reconcile_installed()

    assert touched == ["ahud", "minhud"]
    info = manager.registry.get("ahud")
    assert isinstance(info.source, NoSource)
    assert info.install.entry.path == mods_dir / "ahud"
    assert manager.registry_path.exists()

    assert manager.reconcile_installed() == []


def test_reconcile_leaves_uninstalled_known_mods(tmp_path, mods_dir):
    manager = make_manager(tmp_path, mods_dir)
    manager.registry.add("ahud", DownloadUrl(url="https://example.com/ahud.zip"))
    write_vdf(mods_dir / "ahud")

    assert manager.reconcile_installed() == []
    assert isinstance(manager.registry.get("ahud").install, NotInstalled)


def test_load_reads_saved_registry(tmp_path, mods_dir):
    manager = make_manager(tmp_path, mods_dir)
    write_vdf(mods_dir / "ahud")
    manager.reconcile_installed()

    other = make_manager(tmp_path, mods_dir)
    other.load()

    assert other.registry.get_installed().name == "ahud"
