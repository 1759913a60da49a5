from __future__ import annotations

import asyncio
import logging
import re
from typing import List, Optional
from urllib.parse import urlparse

import httpx
from urlextract import URLExtract

log = logging.getLogger(__name__)

_EXTRACTOR = URLExtract()
_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)

DEFAULT_RESOLVE_TIMEOUT = 5.0
_USER_AGENT = "Mozilla/5.0 KojoGuardian"


def _strip_leading_garbage(u: str) -> str:
    """
    If a string has multiple http(s):// substrings (e.g., copied embeds),
    keep the last one.
    """
    matches = list(re.finditer(r"https?://", u, flags=re.IGNORECASE))
    if matches:
        return u[matches[-1].start():]
    return u


def extract_urls(text: str) -> List[str]:
    """Return explicit ``http(s)://`` URLs in the order they appear.

    Bare domains are ignored so ordinary sentences with dotted words never
    reach the URL classifier.
    """
    if not text:
        return []
    found = _EXTRACTOR.find_urls(text, only_unique=False)
    urls: List[str] = []
    for raw in found:
        candidate = _strip_leading_garbage(str(raw))
        if _SCHEME_RE.match(candidate):
            urls.append(candidate)
    return urls


def first_url(text: str) -> Optional[str]:
    urls = extract_urls(text)
    return urls[0] if urls else None


async def _final_url(url: str, timeout: float) -> str:
    async with httpx.AsyncClient(
        follow_redirects=True,
        max_redirects=1,
        headers={"User-Agent": _USER_AGENT},
        timeout=timeout,
    ) as client:
        # Only the landing URL matters; the body is never read.
        async with client.stream("GET", url) as resp:
            return str(resp.url)


async def resolve_redirect(url: str, *, timeout: float = DEFAULT_RESOLVE_TIMEOUT) -> str:
    """
    Follow at most one redirect and return where it lands.
    ``timeout`` bounds the whole lookup. Any failure (timeout, TLS, too many
    hops) returns ``url`` unchanged.
    """
    try:
        return await asyncio.wait_for(_final_url(url, timeout), timeout)
    except Exception as exc:
        log.debug("Redirect resolution failed for %s: %s", url, exc)
        return url


def url_path(url: str) -> str:
    """Lower-cased path component of ``url`` (query and fragment dropped)."""
    try:
        return urlparse(url).path.lower()
    except ValueError:
        return url.split("?", 1)[0].lower()
