from __future__ import annotations

import json
import logging
import os
import re
import subprocess
from typing import Optional, Sequence

from .constants import FFMPEG_TIMEOUT_SECONDS

log = logging.getLogger(__name__)

FRAME_OFFSETS: tuple[float, ...] = (0.1, 0.5, 0.9)
TAIL_MARGIN_SECONDS = 0.1
_FRAME_FILE_RE = re.compile(r"\.jpe?g$", re.IGNORECASE)


def probe_duration(filename: str) -> Optional[float]:
    """Container duration in seconds, or ``None`` when ffprobe cannot tell."""
    try:
        completed = subprocess.run(
            [
                "ffprobe",
                "-v",
                "error",
                "-show_entries",
                "format=duration",
                "-of",
                "json",
                filename,
            ],
            check=True,
            capture_output=True,
            text=True,
            timeout=FFMPEG_TIMEOUT_SECONDS,
        )
    except (subprocess.SubprocessError, FileNotFoundError, TimeoutError, OSError):
        return None

    try:
        payload = json.loads(completed.stdout)
    except json.JSONDecodeError:
        return None

    duration_raw = (payload.get("format") or {}).get("duration")
    try:
        duration = float(duration_raw) if duration_raw not in {None, "N/A"} else None
    except (TypeError, ValueError):
        return None
    return duration


def sample_timestamps(
    duration: float,
    offsets: Sequence[float] = FRAME_OFFSETS,
) -> list[float]:
    """Seek positions for each fractional offset, kept inside the clip."""
    upper = max(0.0, duration - TAIL_MARGIN_SECONDS)
    return [max(0.0, min(upper, duration * fraction)) for fraction in offsets]


def extract_frame_at(filename: str, timestamp: float, output_path: str) -> bool:
    """Write the single frame at ``timestamp`` to ``output_path`` as JPEG."""
    cmd = [
        "ffmpeg",
        "-hide_banner",
        "-loglevel",
        "error",
        "-nostdin",
        "-y",
        "-ss",
        f"{timestamp:.3f}",
        "-i",
        filename,
        "-frames:v",
        "1",
        "-qscale:v",
        "3",
        output_path,
    ]
    try:
        subprocess.run(
            cmd,
            check=True,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            timeout=FFMPEG_TIMEOUT_SECONDS,
        )
    except (subprocess.SubprocessError, FileNotFoundError, TimeoutError, OSError) as exc:
        log.debug("Frame extraction at %.2fs failed for %s: %s", timestamp, filename, exc)
        return False
    return os.path.exists(output_path) and os.path.getsize(output_path) > 0


def extract_uniform_frames(
    filename: str,
    output_dir: str,
    *,
    fps: float = 1.0,
    limit: Optional[int] = None,
) -> list[str]:
    """Sample the whole clip at ``fps`` frames per second into ``output_dir``."""
    cmd = [
        "ffmpeg",
        "-hide_banner",
        "-loglevel",
        "error",
        "-nostdin",
        "-y",
        "-i",
        filename,
        "-vf",
        f"fps={fps:g}",
    ]
    if limit is not None and limit > 0:
        cmd.extend(["-frames:v", str(limit)])
    cmd.extend(["-qscale:v", "3", os.path.join(output_dir, "u%03d.jpg")])
    try:
        subprocess.run(
            cmd,
            check=True,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            timeout=FFMPEG_TIMEOUT_SECONDS,
        )
    except (subprocess.SubprocessError, FileNotFoundError, TimeoutError, OSError) as exc:
        log.debug("Uniform sampling failed for %s: %s", filename, exc)
    return list_frame_files(output_dir, prefix="u")


def list_frame_files(directory: str, *, prefix: str = "") -> list[str]:
    try:
        names = sorted(
            name
            for name in os.listdir(directory)
            if name.startswith(prefix) and _FRAME_FILE_RE.search(name)
        )
    except OSError:
        return []
    return [os.path.join(directory, name) for name in names]
