"""AI utilities package

Public surface re-exports the classifier client so callers can do:

    from modules.ai import ClassificationClient, ClassificationUnavailable
"""

from .engine import ClassificationClient, image_content
from .errors import ClassificationUnavailable

__all__ = [
    "ClassificationClient",
    "ClassificationUnavailable",
    "image_content",
]
