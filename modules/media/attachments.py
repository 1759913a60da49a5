from __future__ import annotations

import os
from typing import Optional

from modules.utils.url_utils import url_path

__all__ = [
    "IMAGE_EXTS",
    "VIDEO_EXTS",
    "FILE_TYPE_IMAGE",
    "FILE_TYPE_VIDEO",
    "media_kind",
    "attachment_media_kind",
]

IMAGE_EXTS = {".png", ".jpg", ".jpeg", ".gif", ".webp", ".bmp", ".tiff"}
VIDEO_EXTS = {".mp4", ".mov", ".webm", ".mkv", ".avi"}

FILE_TYPE_IMAGE = "image"
FILE_TYPE_VIDEO = "video"


def _kind_from_ext(path: str) -> Optional[str]:
    ext = os.path.splitext(path or "")[1].lower()
    if ext in IMAGE_EXTS:
        return FILE_TYPE_IMAGE
    if ext in VIDEO_EXTS:
        return FILE_TYPE_VIDEO
    return None


def media_kind(
    content_type: Optional[str],
    filename: Optional[str],
    url: Optional[str],
) -> Optional[str]:
    """Classify an attachment as image, video or ``None``.

    The declared content type wins, then the filename extension, then the
    extension of the URL path. The first source that says anything decides.
    """
    declared = (content_type or "").strip().lower()
    if declared.startswith("image/"):
        return FILE_TYPE_IMAGE
    if declared.startswith("video/"):
        return FILE_TYPE_VIDEO

    by_name = _kind_from_ext(filename or "")
    if by_name is not None:
        return by_name

    return _kind_from_ext(url_path(url or ""))


def attachment_media_kind(attachment) -> Optional[str]:
    return media_kind(
        getattr(attachment, "content_type", None),
        getattr(attachment, "filename", None),
        getattr(attachment, "url", None),
    )
