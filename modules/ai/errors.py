from __future__ import annotations

__all__ = ["ClassificationUnavailable"]


class ClassificationUnavailable(RuntimeError):
    """The classification service could not produce a usable response."""
