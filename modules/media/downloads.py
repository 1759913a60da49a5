from __future__ import annotations

import os
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from urllib.parse import urlparse

import aiohttp
from yarl import URL

from modules.utils.file_ops import safe_delete

from .constants import (
    DEFAULT_DOWNLOAD_CAP_BYTES,
    DEFAULT_DOWNLOAD_TIMEOUT_SECONDS,
    MEDIA_USER_AGENT,
    TMP_DIR,
)

CHUNK_SIZE = 1 << 17  # 128 KiB


def _prepare_request_url(url: str) -> URL | str:
    """Preserve percent-encoded segments when handing URLs to aiohttp."""
    if "%" not in url:
        return url
    try:
        return URL(url, encoded=True)
    except ValueError:
        return url


def resolve_ext(provided_ext: str | None, url: str) -> str:
    if provided_ext:
        return provided_ext if provided_ext.startswith(".") else f".{provided_ext}"
    candidate_ext = os.path.splitext(urlparse(url).path)[1]
    return candidate_ext or ".bin"


async def _stream_to_file(
    session: aiohttp.ClientSession,
    url: str,
    path: str,
    *,
    timeout: float,
    download_cap_bytes: Optional[int],
) -> int:
    total = 0
    async with session.get(
        _prepare_request_url(url),
        timeout=aiohttp.ClientTimeout(total=timeout),
        headers={"User-Agent": MEDIA_USER_AGENT},
    ) as resp:
        resp.raise_for_status()
        declared = resp.content_length
        if download_cap_bytes is not None and declared and declared > download_cap_bytes:
            raise ValueError(f"Download exceeds cap ({declared} bytes)")
        with open(path, "wb") as file_obj:
            async for chunk in resp.content.iter_chunked(CHUNK_SIZE):
                if not chunk:
                    continue
                total += len(chunk)
                if download_cap_bytes is not None and total > download_cap_bytes:
                    raise ValueError("Download exceeded cap")
                file_obj.write(chunk)
    return total


@asynccontextmanager
async def temp_download(
    session: Optional[aiohttp.ClientSession],
    url: str,
    ext: str | None = None,
    *,
    directory: str | None = None,
    timeout: float = DEFAULT_DOWNLOAD_TIMEOUT_SECONDS,
    download_cap_bytes: Optional[int] = DEFAULT_DOWNLOAD_CAP_BYTES,
) -> AsyncIterator[str]:
    """Download ``url`` to a uniquely named file and remove it on exit.

    A session is borrowed when given; otherwise a short-lived one is opened
    for this download only.
    """
    target_dir = directory or TMP_DIR
    os.makedirs(target_dir, exist_ok=True)
    path = os.path.join(target_dir, f"{uuid.uuid4().hex}{resolve_ext(ext, url)}")

    try:
        if session is not None:
            await _stream_to_file(
                session,
                url,
                path,
                timeout=timeout,
                download_cap_bytes=download_cap_bytes,
            )
        else:
            async with aiohttp.ClientSession() as own_session:
                await _stream_to_file(
                    own_session,
                    url,
                    path,
                    timeout=timeout,
                    download_cap_bytes=download_cap_bytes,
                )
        yield path
    finally:
        safe_delete(path)
