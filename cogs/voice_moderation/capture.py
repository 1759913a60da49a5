from __future__ import annotations

import asyncio
import logging
import os
import time
import uuid
from typing import Any, Callable, Optional

from modules.media.constants import TMP_DIR
from modules.moderation.classifiers import ContentClassifier
from modules.moderation.policy import decide, requires_moderation
from modules.moderation.service import ModerationOutcome, ModerationService, ModerationTarget
from modules.utils.file_ops import safe_delete

from .buffers import CaptureBuffer
from .state import VoiceSession
from .transcriber import Transcriber, is_meaningful, write_wav_file

log = logging.getLogger(__name__)

DEFAULT_SILENCE_MS = 900
DEFAULT_MAX_CAPTURE_SECONDS = 20.0
POLL_INTERVAL_SECONDS = 0.1


async def wait_for_silence(
    buffer: CaptureBuffer,
    *,
    silence_seconds: float,
    max_seconds: float,
    poll_interval: float = POLL_INTERVAL_SECONDS,
    clock: Callable[[], float] = time.monotonic,
) -> None:
    """Return once the speaker has been quiet long enough or the cap is hit."""
    while True:
        now = clock()
        if buffer.silence_for(now) >= silence_seconds:
            return
        if buffer.elapsed(now) >= max_seconds or buffer.full:
            log.debug("Capture reached its %.1fs cap", max_seconds)
            return
        await asyncio.sleep(poll_interval)


class SpeakerCapture:
    """Record one utterance from one speaker, transcribe it and moderate it.

    The WAV file written for the transcriber belongs to a single ``run`` and
    is deleted however the run ends.
    """

    def __init__(
        self,
        transcriber: Transcriber,
        classifier: ContentClassifier,
        service: ModerationService,
        *,
        is_active: Callable[[VoiceSession], bool],
        silence_ms: int = DEFAULT_SILENCE_MS,
        max_capture_seconds: float = DEFAULT_MAX_CAPTURE_SECONDS,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        scratch_dir: str = TMP_DIR,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.transcriber = transcriber
        self.classifier = classifier
        self.service = service
        self._is_active = is_active
        self.silence_seconds = silence_ms / 1000.0
        self.max_capture_seconds = max_capture_seconds
        self.poll_interval = poll_interval
        self.scratch_dir = scratch_dir
        self._clock = clock

    async def record(self, session: VoiceSession, user_id: int) -> bytes:
        buffer = CaptureBuffer(max_seconds=self.max_capture_seconds, clock=self._clock)
        session.sink.subscribe(user_id, buffer)
        try:
            await wait_for_silence(
                buffer,
                silence_seconds=self.silence_seconds,
                max_seconds=self.max_capture_seconds,
                poll_interval=self.poll_interval,
                clock=self._clock,
            )
        finally:
            session.sink.unsubscribe(user_id, buffer)
        return buffer.pcm()

    async def run(self, session: VoiceSession, member: Any) -> Optional[ModerationOutcome]:
        if not self.transcriber.available:
            return None
        pcm = await self.record(session, member.id)
        if not pcm:
            return None

        os.makedirs(self.scratch_dir, exist_ok=True)
        wav_path = os.path.join(
            self.scratch_dir,
            f"voice-{session.guild_id}-{member.id}-{uuid.uuid4().hex}.wav",
        )
        try:
            await asyncio.to_thread(write_wav_file, wav_path, pcm)
            transcript = await self.transcriber.transcribe(wav_path)
            if not is_meaningful(transcript):
                return None
            log.debug("Voice transcript for %s in guild %s: %s", member.id, session.guild_id, transcript)

            verdict = await self.classifier.classify_text(
                transcript, f"voice_channel={session.channel_id}"
            )
            if not requires_moderation(verdict, decide(verdict)):
                return None
            if not self._is_active(session):
                log.info(
                    "Voice session in guild %s ended before moderation of %s; discarding",
                    session.guild_id,
                    member.id,
                )
                return None

            target = ModerationTarget(
                guild=getattr(member, "guild", None) or session.guild,
                author=member,
                channel_id=session.channel_id,
                member=member,
                content_preview=transcript,
            )
            return await self.service.apply(target, verdict)
        finally:
            safe_delete(wav_path)
