from typing import Any

__all__ = ["FrameSamplingAggregator", "worst_of", "temp_download"]


def __getattr__(name: str) -> Any:
    if name in {"FrameSamplingAggregator", "worst_of"}:
        from . import video

        return getattr(video, name)
    if name == "temp_download":
        from .downloads import temp_download

        return temp_download
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
