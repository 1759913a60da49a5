from __future__ import annotations

import asyncio
import logging
import os
import uuid
from typing import Awaitable, Callable, Iterable, Optional

import aiohttp

from modules.moderation.verdict import Verdict
from modules.utils.file_ops import safe_rmtree

from .constants import DEFAULT_DOWNLOAD_TIMEOUT_SECONDS, DEFAULT_MAX_FRAMES, TMP_DIR
from .downloads import temp_download
from .frames import (
    extract_frame_at,
    extract_uniform_frames,
    probe_duration,
    sample_timestamps,
)
from .payloads import frame_to_data_url

log = logging.getLogger(__name__)

ImageClassifier = Callable[[str], Awaitable[Verdict]]
WholeVideoClassifier = Callable[[str, Optional[str]], Awaitable[Verdict]]

__all__ = ["FrameSamplingAggregator", "worst_of"]


def worst_of(verdicts: Iterable[Verdict]) -> Optional[Verdict]:
    """Highest-severity verdict; the earliest one wins ties."""
    worst: Optional[Verdict] = None
    for verdict in verdicts:
        if worst is None or verdict.severity.rank > worst.severity.rank:
            worst = verdict
    return worst


class FrameSamplingAggregator:
    """Turn a video into one verdict by classifying a handful of its frames.

    ``classify_image`` receives an image URL (a JPEG data URL here) and
    ``classify_whole_video`` receives the original URL and filename. The
    latter is the fallback whenever no frame can be produced.
    """

    def __init__(
        self,
        classify_image: ImageClassifier,
        classify_whole_video: WholeVideoClassifier,
        *,
        max_frames: int = DEFAULT_MAX_FRAMES,
        download_timeout: float = DEFAULT_DOWNLOAD_TIMEOUT_SECONDS,
        session: Optional[aiohttp.ClientSession] = None,
        scratch_root: str = TMP_DIR,
    ) -> None:
        self._classify_image = classify_image
        self._classify_whole_video = classify_whole_video
        self.max_frames = max(1, int(max_frames))
        self.download_timeout = download_timeout
        self._session = session
        self._scratch_root = scratch_root

    async def aggregate(self, video_url: str, filename: Optional[str] = None) -> Verdict:
        workdir = os.path.join(self._scratch_root, f"video-{uuid.uuid4().hex}")
        os.makedirs(workdir, exist_ok=True)
        try:
            frames = await self._stage_and_sample(video_url, filename, workdir)
            if frames is None:
                return await self._classify_whole_video(video_url, filename)
            frames = frames[: self.max_frames]
            if not frames:
                log.debug("No frames extracted from %s; classifying whole video", video_url)
                return await self._classify_whole_video(video_url, filename)
            verdict = await self._classify_frames(frames)
            if verdict is None:
                log.info("Every frame of %s failed to classify; classifying whole video", video_url)
                return await self._classify_whole_video(video_url, filename)
            return verdict
        finally:
            safe_rmtree(workdir)

    async def _stage_and_sample(
        self,
        video_url: str,
        filename: Optional[str],
        workdir: str,
    ) -> Optional[list[str]]:
        ext = os.path.splitext(filename)[1] if filename else None
        try:
            async with temp_download(
                self._session,
                video_url,
                ext or None,
                directory=workdir,
                timeout=self.download_timeout,
            ) as video_path:
                return await self._sample_frames(video_path, workdir)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError, OSError) as exc:
            log.info("Video download failed for %s: %s", video_url, exc)
            return None

    async def _sample_frames(self, video_path: str, workdir: str) -> list[str]:
        duration = await asyncio.to_thread(probe_duration, video_path)
        frames: list[str] = []
        if duration is not None and duration > 0:
            frames = await self._extract_at_offsets(video_path, workdir, duration)
        if not frames:
            frames = await asyncio.to_thread(
                extract_uniform_frames,
                video_path,
                workdir,
                fps=1.0,
                limit=self.max_frames,
            )
        return frames

    async def _extract_at_offsets(
        self,
        video_path: str,
        workdir: str,
        duration: float,
    ) -> list[str]:
        timestamps = sample_timestamps(duration)
        outputs = [os.path.join(workdir, f"f{idx:02d}.jpg") for idx in range(len(timestamps))]
        results = await asyncio.gather(
            *(
                asyncio.to_thread(extract_frame_at, video_path, ts, out)
                for ts, out in zip(timestamps, outputs)
            ),
            return_exceptions=True,
        )
        return [out for out, ok in zip(outputs, results) if ok is True]

    async def _classify_frames(self, frames: list[str]) -> Optional[Verdict]:
        results = await asyncio.gather(
            *(self._classify_frame(path) for path in frames),
            return_exceptions=True,
        )
        verdicts: list[Verdict] = []
        for path, result in zip(frames, results):
            if isinstance(result, Verdict):
                verdicts.append(result)
            elif isinstance(result, Exception):
                log.warning("Frame %s could not be classified: %s", os.path.basename(path), result)
            else:
                raise result
        worst = worst_of(verdicts)
        if worst is None:
            return None
        return worst.with_rationale_suffix(f"_frames:{len(verdicts)}")

    async def _classify_frame(self, path: str) -> Verdict:
        data_url = await frame_to_data_url(path)
        return await self._classify_image(data_url)
