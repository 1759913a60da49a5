from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

DEFAULT_DEBOUNCE_MS = 1500


class SpeakerDebounce:
    """Per-speaker minimum gap between capture triggers.

    ``try_trigger`` checks and records in one step under a lock, so two
    speech-start events racing for the same user can never both win.
    """

    def __init__(
        self,
        min_gap_ms: int = DEFAULT_DEBOUNCE_MS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.min_gap = max(0, min_gap_ms) / 1000.0
        self._clock = clock
        self._last: dict[int, float] = {}
        self._lock = threading.Lock()

    def try_trigger(self, user_id: int) -> bool:
        now = self._clock()
        with self._lock:
            last = self._last.get(user_id)
            if last is not None and now - last < self.min_gap:
                return False
            self._last[user_id] = now
            return True


@dataclass(eq=False)
class VoiceSession:
    """One live voice connection in a guild, owned by the session manager."""

    guild_id: int
    channel_id: int
    voice_client: Any
    sink: Any
    debounce: SpeakerDebounce
    tasks: set[asyncio.Task] = field(default_factory=set)
    closed: bool = False

    def track(self, task: asyncio.Task) -> None:
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)

    @property
    def guild(self) -> Optional[Any]:
        return getattr(self.voice_client, "guild", None)
