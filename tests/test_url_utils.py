from __future__ import annotations

import asyncio
import time

import pytest

aiohttp = pytest.importorskip("aiohttp")
from aiohttp import web

from modules.utils.url_utils import extract_urls, first_url, resolve_redirect, url_path


def test_extract_urls_keeps_order_and_requires_scheme():
    text = "see https://first.com/a then http://second.org/b and also bare.com"
    assert extract_urls(text) == ["https://first.com/a", "http://second.org/b"]
    assert first_url(text) == "https://first.com/a"


def test_no_urls():
    assert extract_urls("") == []
    assert first_url("just chatting. nothing here") is None


def test_url_path_is_lowercased_without_query():
    assert url_path("https://cdn.com/Media/Clip.MP4?token=ABC#t=1") == "/media/clip.mp4"


@pytest.mark.anyio
async def test_resolve_redirect_follows_one_hop():
    async def start(request):
        raise web.HTTPFound("/landing")

    async def landing(request):
        return web.Response(text="ok")

    app = web.Application()
    app.router.add_get("/start", start)
    app.router.add_get("/landing", landing)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    try:
        port = site._server.sockets[0].getsockname()[1]
        resolved = await resolve_redirect(f"http://127.0.0.1:{port}/start", timeout=5)
        assert resolved == f"http://127.0.0.1:{port}/landing"
    finally:
        await runner.cleanup()


@pytest.mark.anyio
async def test_resolve_redirect_failure_returns_original():
    url = "http://127.0.0.1:1/unreachable"
    assert await resolve_redirect(url, timeout=0.5) == url


async def _serve(path, handler):
    app = web.Application()
    app.router.add_get(path, handler)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    port = site._server.sockets[0].getsockname()[1]
    return runner, f"http://127.0.0.1:{port}{path}"


@pytest.mark.anyio
async def test_resolve_redirect_does_not_wait_for_a_slow_body():
    released = asyncio.Event()

    async def trickle(request):
        resp = web.StreamResponse()
        await resp.prepare(request)
        for _ in range(10):
            if released.is_set():
                break
            await resp.write(b"x" * 1024)
            await asyncio.sleep(0.3)
        return resp

    runner, url = await _serve("/big.bin", trickle)
    try:
        started = time.monotonic()
        resolved = await resolve_redirect(url, timeout=0.5)
        elapsed = time.monotonic() - started
    finally:
        released.set()
        await runner.cleanup()

    assert resolved == url
    assert elapsed < 1.0


@pytest.mark.anyio
async def test_resolve_redirect_gives_up_on_slow_headers():
    released = asyncio.Event()

    async def stall(request):
        try:
            await asyncio.wait_for(released.wait(), timeout=3)
        except asyncio.TimeoutError:
            pass
        return web.Response(text="late")

    runner, url = await _serve("/stall", stall)
    try:
        started = time.monotonic()
        resolved = await resolve_redirect(url, timeout=0.5)
        elapsed = time.monotonic() - started
    finally:
        released.set()
        await runner.cleanup()

    assert resolved == url
    assert elapsed < 1.5
