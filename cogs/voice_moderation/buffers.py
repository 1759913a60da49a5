from __future__ import annotations

import threading
import time
from typing import Callable, Optional

SAMPLE_RATE = 48000
CHANNELS = 2
BYTES_PER_SAMPLE = 2  # s16le
FRAME_BYTES = CHANNELS * BYTES_PER_SAMPLE  # 4
BYTES_PER_SECOND = SAMPLE_RATE * FRAME_BYTES


def is_silent(chunk: bytes) -> bool:
    return not chunk.strip(b"\x00")


class CaptureBuffer:
    """PCM collected for one speaker during one capture.

    ``append`` runs on the voice receive thread; everything else on the event
    loop, so the byte buffer and timestamps share a lock. Audio beyond
    ``max_seconds`` is dropped.
    """

    def __init__(
        self,
        *,
        max_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._data = bytearray()
        self._max_bytes = int(BYTES_PER_SECOND * max_seconds)
        self.started_at = clock()
        self.last_voice_at = self.started_at

    def append(self, chunk: bytes) -> None:
        if not chunk:
            return
        with self._lock:
            if not is_silent(chunk):
                self.last_voice_at = self._clock()
            room = self._max_bytes - len(self._data)
            if room <= 0:
                return
            self._data.extend(chunk[:room])

    @property
    def full(self) -> bool:
        with self._lock:
            return len(self._data) >= self._max_bytes

    def silence_for(self, now: Optional[float] = None) -> float:
        with self._lock:
            return (now if now is not None else self._clock()) - self.last_voice_at

    def elapsed(self, now: Optional[float] = None) -> float:
        return (now if now is not None else self._clock()) - self.started_at

    def pcm(self) -> bytes:
        """Collected audio, aligned down to a whole frame."""
        with self._lock:
            end = len(self._data) - (len(self._data) % FRAME_BYTES)
            return bytes(self._data[:end])
