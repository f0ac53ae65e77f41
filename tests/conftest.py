"""
Shared fixtures and helpers for the Mods Manager test suite.
"""

import io
import zipfile
from contextlib import asynccontextmanager
from pathlib import Path

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer


def write_vdf(directory: Path, name: str = "test") -> Path:
    """Create ``directory`` holding an info.vdf that declares ``name``."""
    directory.mkdir(parents=True, exist_ok=True)
    vdf = directory / "info.vdf"
    vdf.write_text(f'"{name}"\n{{\n    "ui_version"    "3"\n}}', encoding="utf-8")
    return vdf


def zip_bytes(members: dict) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for member, data in members.items():
            zf.writestr(member, data)
    return buf.getvalue()


def damaged_zip_bytes(members: dict, damaged: str) -> bytes:
    """A deflated zip whose directory is intact but whose ``damaged`` data is not.

    The compressed bytes of that member are overwritten with 0xFF, which
    starts a deflate block of the reserved type.
    """
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for member, data in members.items():
            zf.writestr(member, data)
    raw = bytearray(buf.getvalue())

    with zipfile.ZipFile(io.BytesIO(bytes(raw))) as zf:
        info = zf.getinfo(damaged)
    name_len = int.from_bytes(raw[info.header_offset + 26:info.header_offset + 28], "little")
    extra_len = int.from_bytes(raw[info.header_offset + 28:info.header_offset + 30], "little")
    start = info.header_offset + 30 + name_len + extra_len
    raw[start:start + info.compress_size] = b"\xff" * info.compress_size
    return bytes(raw)


def make_zip(path: Path, members: dict) -> Path:
    path.write_bytes(zip_bytes(members))
    return path


HUD_ZIP = {
    "x/info.vdf": '"Some Other Name"\n{\n}',
    "x/resource/ui/hudlayout.res": "layout",
    "x/scripts/hudanimations.txt": "anims",
}


@asynccontextmanager
async def serve(routes: dict):
    """Serve ``{path: body}`` or ``{path: (body, headers)}`` over local HTTP.

    A body that is a ``web.HTTPException`` instance is raised instead,
    which is how redirects and errors are served.
    """
    app = web.Application()
    for route, served in routes.items():
        body, headers = served if isinstance(served, tuple) else (served, {})

        async def handler(request, body=body, headers=headers):
            if isinstance(body, web.HTTPException):
                raise body
            return web.Response(body=body, headers=headers)

        app.router.add_get(route, handler)

    async with TestServer(app) as server:
        yield server


@pytest.fixture
def mods_dir(tmp_path):
    """An empty, not yet created, managed mods directory."""
    return tmp_path / "game" / "tf" / "custom"
