from __future__ import annotations

import asyncio
import logging
import threading
import time
from array import array
from typing import Any, Callable, Optional

from discord.ext import voice_recv

from .buffers import CaptureBuffer

log = logging.getLogger(__name__)

SpeakingCallback = Callable[[Any], None]


class SpeakerRouterSink(voice_recv.AudioSink):
    """AudioSink that routes decoded PCM to per-speaker capture buffers.

    - Requests PCM (s16le, 48kHz, 2ch)
    - Attributes packets via the packet's member or the SSRC mapping
    - Forwards speech-start events to the event loop
    """

    _SSRC_TTL_SECONDS = 300

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        on_speaking_start: SpeakingCallback,
    ) -> None:
        super().__init__()
        self._loop = loop
        self._on_speaking_start = on_speaking_start
        self._lock = threading.Lock()
        self._subscribers: dict[int, CaptureBuffer] = {}
        self._ssrc_to_uid: dict[int, int] = {}
        self._ssrc_last_seen: dict[int, float] = {}

    def wants_opus(self) -> bool:
        return False

    def subscribe(self, user_id: int, buffer: CaptureBuffer) -> None:
        with self._lock:
            self._subscribers[user_id] = buffer

    def unsubscribe(self, user_id: int, buffer: Optional[CaptureBuffer] = None) -> None:
        with self._lock:
            current = self._subscribers.get(user_id)
            if buffer is None or current is buffer:
                self._subscribers.pop(user_id, None)

    def _resolve_uid_from_ssrc(self, ssrc: Optional[int]) -> Optional[int]:
        if not isinstance(ssrc, int):
            return None
        now = time.monotonic()
        last = self._ssrc_last_seen.get(ssrc)
        if last is not None and now - last > self._SSRC_TTL_SECONDS:
            self._ssrc_to_uid.pop(ssrc, None)
            self._ssrc_last_seen.pop(ssrc, None)
            return None
        uid = self._ssrc_to_uid.get(ssrc)
        if uid:
            self._ssrc_last_seen[ssrc] = now
        return uid

    def write(self, user, data: voice_recv.VoiceData):
        pcm = getattr(data, "pcm", None)
        if pcm is None:
            return

        uid: Optional[int] = None
        if user is not None:
            try:
                uid = int(getattr(user, "id", user))
            except (TypeError, ValueError):
                uid = None
        if uid is None:
            uid = self._resolve_uid_from_ssrc(getattr(data, "ssrc", None))
        if uid is None:
            return

        with self._lock:
            buffer = self._subscribers.get(uid)
        if buffer is None:
            return

        if isinstance(pcm, (bytes, bytearray, memoryview)):
            buffer.append(bytes(pcm))
        elif isinstance(pcm, array):
            buffer.append(pcm.tobytes())

    def cleanup(self) -> None:
        with self._lock:
            self._subscribers.clear()
        self._ssrc_to_uid.clear()
        self._ssrc_last_seen.clear()

    def _dispatch_speaking_start(self, member) -> None:
        if self._loop.is_closed():
            return
        try:
            self._loop.call_soon_threadsafe(self._on_speaking_start, member)
        except RuntimeError:
            log.debug("Event loop closed; dropping speech-start for %s", getattr(member, "id", None))

    @voice_recv.AudioSink.listener()
    def on_voice_member_speaking_start(self, member):  # type: ignore[override]
        if member is not None:
            self._dispatch_speaking_start(member)

    # Speaking events keep SSRC mapping fresh
    @voice_recv.AudioSink.listener()
    def on_voice_member_speaking_state(self, member, ssrc, state):  # type: ignore[override]
        if member is not None and isinstance(ssrc, int):
            self._ssrc_to_uid[ssrc] = int(member.id)
            self._ssrc_last_seen[ssrc] = time.monotonic()
