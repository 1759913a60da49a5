from __future__ import annotations

import logging
from typing import Optional

import aiohttp

from modules.ai import ClassificationClient, ClassificationUnavailable, image_content
from modules.ai.prompts import (
    IMAGE_SYSTEM_PROMPT,
    IMAGE_USER_PROMPT,
    TEXT_SYSTEM_PROMPT,
    URL_SYSTEM_PROMPT,
    VIDEO_SYSTEM_PROMPT,
)
from modules.media.constants import DEFAULT_DOWNLOAD_TIMEOUT_SECONDS, DEFAULT_MAX_FRAMES
from modules.media.video import FrameSamplingAggregator
from modules.utils.url_utils import DEFAULT_RESOLVE_TIMEOUT, resolve_redirect

from .heuristics import risky_pii_heuristic
from .verdict import Verdict, normalize_verdict

log = logging.getLogger(__name__)

EMPTY_CONTENT_CONFIDENCE = 0.95


def _unavailable(rationale: str) -> Verdict:
    return normalize_verdict(
        {
            "safe": False,
            "category": "other",
            "severity": "medium",
            "suggested_action": "delete",
            "rationale": rationale,
        }
    )


def _pii_fallback() -> Verdict:
    return normalize_verdict(
        {
            "safe": False,
            "category": "personal_info_solicitation",
            "severity": "high",
            "suggested_action": "ban",
            "rationale": "fallback_pii_heuristic",
        }
    )


def _empty_content() -> Verdict:
    return normalize_verdict(
        {
            "safe": True,
            "category": "other",
            "suggested_action": "allow",
            "confidence": EMPTY_CONTENT_CONFIDENCE,
        }
    )


def _log_failure(kind: str, exc: Exception) -> None:
    if isinstance(exc, ClassificationUnavailable):
        log.info("%s classification unavailable: %s", kind, exc)
    else:
        log.warning("%s classification failed: %s", kind, exc, exc_info=exc)


class ContentClassifier:
    """Every classification call site with its fail-closed fallback.

    Each method returns a normalized :class:`Verdict` and never raises.
    """

    def __init__(
        self,
        client: ClassificationClient,
        *,
        max_frames: int = DEFAULT_MAX_FRAMES,
        download_timeout: float = DEFAULT_DOWNLOAD_TIMEOUT_SECONDS,
        url_resolve_timeout: float = DEFAULT_RESOLVE_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._client = client
        self.url_resolve_timeout = url_resolve_timeout
        self.aggregator = FrameSamplingAggregator(
            self.classify_image,
            self.classify_video_metadata,
            max_frames=max_frames,
            download_timeout=download_timeout,
            session=session,
        )

    async def classify_text(self, text: Optional[str], context: str = "") -> Verdict:
        if not text or not text.strip():
            return _empty_content()
        try:
            raw = await self._client.complete(
                system_prompt=TEXT_SYSTEM_PROMPT,
                user_content=f"Context: {context or 'N/A'}\nMessage: {text}",
            )
        except Exception as exc:
            _log_failure("Text", exc)
            if risky_pii_heuristic(text):
                return _pii_fallback()
            return _unavailable("analysis_unavailable")
        return normalize_verdict(raw)

    async def classify_url(self, url: str, context: str = "") -> Verdict:
        final_url = await resolve_redirect(url, timeout=self.url_resolve_timeout)
        try:
            raw = await self._client.complete(
                system_prompt=URL_SYSTEM_PROMPT,
                user_content=f"Context: {context or 'N/A'}\nURL: {final_url}",
                max_tokens=160,
            )
        except Exception as exc:
            _log_failure("URL", exc)
            return _unavailable("analysis_unavailable")
        return normalize_verdict(raw)

    async def classify_image(self, image_url: str) -> Verdict:
        try:
            raw = await self._client.complete(
                system_prompt=IMAGE_SYSTEM_PROMPT,
                user_content=image_content(IMAGE_USER_PROMPT, image_url),
            )
        except Exception as exc:
            _log_failure("Image", exc)
            return _unavailable("image_analysis_unavailable")
        return normalize_verdict(raw)

    async def classify_video_metadata(self, video_url: str, filename: Optional[str] = None) -> Verdict:
        """Classify a video from its URL and filename alone."""
        try:
            raw = await self._client.complete(
                system_prompt=VIDEO_SYSTEM_PROMPT,
                user_content=(
                    f"Video URL: {video_url}\nFilename: {filename or 'N/A'}\n"
                    "Context: Discord attachment.\nClassify risk."
                ),
            )
        except Exception as exc:
            _log_failure("Video", exc)
            return _unavailable("video_analysis_unavailable")
        return normalize_verdict(raw)

    async def classify_video(self, video_url: str, filename: Optional[str] = None) -> Verdict:
        try:
            return await self.aggregator.aggregate(video_url, filename)
        except Exception as exc:
            log.warning("Frame sampling failed for %s: %s", video_url, exc, exc_info=exc)
            return await self.classify_video_metadata(video_url, filename)
