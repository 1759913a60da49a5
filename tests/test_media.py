from __future__ import annotations

import base64
import io
import os
from types import SimpleNamespace

import pytest
from PIL import Image

aiohttp = pytest.importorskip("aiohttp")
from aiohttp import web

from modules.media.attachments import (
    FILE_TYPE_IMAGE,
    FILE_TYPE_VIDEO,
    attachment_media_kind,
    media_kind,
)
from modules.media.downloads import resolve_ext, temp_download
from modules.media.payloads import frame_to_data_url, frame_to_data_url_sync


def test_declared_content_type_beats_extension():
    assert media_kind("video/mp4", "clip.png", None) == FILE_TYPE_VIDEO
    assert media_kind("image/webp", "clip.mp4", None) == FILE_TYPE_IMAGE


def test_extension_fallbacks():
    assert media_kind(None, "Clip.MOV", None) == FILE_TYPE_VIDEO
    assert media_kind("application/octet-stream", None, "https://cdn.example/a/b.JPG?x=1") == FILE_TYPE_IMAGE
    assert media_kind(None, "notes.txt", "https://cdn.example/notes.txt") is None


def test_attachment_media_kind_reads_attributes():
    attachment = SimpleNamespace(content_type=None, filename="cat.gif", url="https://cdn.example/cat")
    assert attachment_media_kind(attachment) == FILE_TYPE_IMAGE


def test_resolve_ext():
    assert resolve_ext("mp4", "https://x.com/a") == ".mp4"
    assert resolve_ext(None, "https://x.com/a/video.webm?sig=1") == ".webm"
    assert resolve_ext(None, "https://x.com/a") == ".bin"


async def _serve(handler):
    app = web.Application()
    app.router.add_get("/", handler)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    port = site._server.sockets[0].getsockname()[1]
    return runner, f"http://127.0.0.1:{port}/"


@pytest.mark.anyio
async def test_temp_download_writes_to_disk_and_cleans_up(tmp_path):
    payload = b"0123456789" * 40000

    async def handler(request):
        return web.Response(body=payload)

    runner, url = await _serve(handler)
    try:
        async with aiohttp.ClientSession() as session:
            async with temp_download(session, url, ext="dat", directory=str(tmp_path)) as path:
                assert path.endswith(".dat")
                with open(path, "rb") as handle:
                    assert handle.read() == payload
            assert not os.path.exists(path)
    finally:
        await runner.cleanup()


@pytest.mark.anyio
async def test_temp_download_enforces_cap(tmp_path):
    async def handler(request):
        return web.Response(body=b"x" * 4096)

    runner, url = await _serve(handler)
    try:
        with pytest.raises(ValueError):
            async with temp_download(
                None, url, ext="bin", directory=str(tmp_path), download_cap_bytes=1024
            ):
                pass
        assert os.listdir(tmp_path) == []
    finally:
        await runner.cleanup()


@pytest.mark.anyio
async def test_temp_download_raises_on_http_error(tmp_path):
    async def handler(request):
        return web.Response(status=404)

    runner, url = await _serve(handler)
    try:
        with pytest.raises(aiohttp.ClientResponseError):
            async with temp_download(None, url, directory=str(tmp_path)):
                pass
        assert os.listdir(tmp_path) == []
    finally:
        await runner.cleanup()


def _decode(data_url: str) -> Image.Image:
    prefix = "data:image/jpeg;base64,"
    assert data_url.startswith(prefix)
    return Image.open(io.BytesIO(base64.b64decode(data_url[len(prefix):])))


def test_frame_to_data_url_downscales_and_flattens(tmp_path):
    path = tmp_path / "frame.png"
    Image.new("RGBA", (2000, 1000), color=(255, 0, 0, 0)).save(path)

    image = _decode(frame_to_data_url_sync(str(path), max_edge=768))

    assert image.format == "JPEG"
    assert max(image.size) == 768
    assert image.mode == "RGB"
    # fully transparent pixels land on white
    r, g, b = image.getpixel((10, 10))
    assert min(r, g, b) > 240


@pytest.mark.anyio
async def test_small_frames_keep_their_size(tmp_path):
    path = tmp_path / "small.jpg"
    Image.new("RGB", (320, 240), color=(0, 128, 0)).save(path)

    image = _decode(await frame_to_data_url(str(path)))

    assert image.size == (320, 240)
