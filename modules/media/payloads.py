from __future__ import annotations

import asyncio
import base64
import io
import os

from PIL import Image

__all__ = [
    "VIDEO_FRAME_MAX_EDGE",
    "JPEG_QUALITY",
    "flatten_alpha",
    "frame_to_data_url_sync",
    "frame_to_data_url",
]

_RESAMPLING_FILTER = getattr(getattr(Image, "Resampling", Image), "LANCZOS", Image.BICUBIC)

VIDEO_FRAME_MAX_EDGE = int(os.getenv("KOJO_VIDEO_FRAME_MAX_EDGE", "768"))
JPEG_QUALITY = int(os.getenv("KOJO_VIDEO_FRAME_JPEG_QUALITY", "80"))


def flatten_alpha(image: Image.Image) -> Image.Image:
    """Return an RGB image with alpha composited on white."""
    if image.mode not in {"RGBA", "LA"}:
        return image.convert("RGB") if image.mode != "RGB" else image
    base = Image.new("RGB", image.size, (255, 255, 255))
    rgb = image.convert("RGB")
    alpha = image.split()[-1]
    base.paste(rgb, mask=alpha)
    return base


def frame_to_data_url_sync(path: str, *, max_edge: int = VIDEO_FRAME_MAX_EDGE) -> str:
    """Encode the frame at ``path`` as a ``data:image/jpeg;base64`` URL."""
    with Image.open(path) as img:
        working = flatten_alpha(img)
        if max(working.size) > max_edge:
            working = working.copy()
            working.thumbnail((max_edge, max_edge), _RESAMPLING_FILTER)
        buffer = io.BytesIO()
        working.save(buffer, format="JPEG", quality=JPEG_QUALITY, optimize=True)
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/jpeg;base64,{encoded}"


async def frame_to_data_url(path: str, *, max_edge: int = VIDEO_FRAME_MAX_EDGE) -> str:
    return await asyncio.to_thread(frame_to_data_url_sync, path, max_edge=max_edge)
