from .config import ModerationConfig, RuntimeConfig, VoiceConfig, load_runtime_config
from .logging import configure_logging

__all__ = [
    "ModerationConfig",
    "RuntimeConfig",
    "VoiceConfig",
    "load_runtime_config",
    "configure_logging",
]
