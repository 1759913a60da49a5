from __future__ import annotations

import logging
import os
import sys

import discord
from discord.ext import voice_recv

log = logging.getLogger(__name__)

# Reduce noisy warnings from decoder flushes when a capture ends
logging.getLogger("discord.ext.voice_recv.opus").setLevel(logging.ERROR)


def _opus_candidates() -> list[str]:
    if sys.platform.startswith("linux"):
        return ["libopus.so.0", "libopus.so"]
    if sys.platform == "darwin":
        return ["libopus.0.dylib", "libopus.dylib"]
    if sys.platform.startswith("win"):
        return ["opus.dll", "libopus-0.dll", "libopus.dll"]
    return []


def ensure_opus_loaded() -> bool:
    """Ensure opus is loaded for voice receive/PCM decode."""
    if discord.opus.is_loaded():
        return True

    env_path = os.getenv("OPUS_LIBRARY_PATH") or os.getenv("OPUS_DLL_PATH")
    candidates = ([env_path] if env_path else []) + _opus_candidates()
    for name in candidates:
        try:
            discord.opus.load_opus(name)
        except (OSError, TypeError) as exc:
            log.debug("Could not load opus from %s: %s", name, exc)
            continue
        if discord.opus.is_loaded():
            return True

    log.warning(
        "Opus library not loaded. Install system opus and/or set OPUS_LIBRARY_PATH. Platform=%s",
        sys.platform,
    )
    return False


async def connect_voice(channel: discord.VoiceChannel) -> voice_recv.VoiceRecvClient:
    """Connect to ``channel`` with a receive-capable client (self_deaf=False)."""
    ensure_opus_loaded()
    guild = channel.guild
    current = guild.voice_client
    if current is not None and current.is_connected():
        if isinstance(current, voice_recv.VoiceRecvClient):
            if getattr(current.channel, "id", None) != channel.id:
                await current.move_to(channel)
            return current
        await current.disconnect(force=True)
    return await channel.connect(self_deaf=False, self_mute=True, cls=voice_recv.VoiceRecvClient)
