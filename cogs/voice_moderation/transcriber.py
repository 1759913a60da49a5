from __future__ import annotations

import asyncio
import logging
import wave
from typing import Any, Optional

from openai import AsyncOpenAI

from .buffers import BYTES_PER_SAMPLE, CHANNELS, SAMPLE_RATE

log = logging.getLogger(__name__)

BACKEND_OPENAI = "openai"
BACKEND_LOCAL = "local"
MIN_TRANSCRIPT_CHARS = 3


def _normalize_text(s: str) -> str:
    # Remove newlines and collapse any repeated whitespace
    return " ".join(s.replace("\n", " ").split())


def is_meaningful(transcript: Optional[str]) -> bool:
    """Transcripts of two characters or fewer count as nothing said."""
    return len((transcript or "").strip()) >= MIN_TRANSCRIPT_CHARS


def write_wav_file(path: str, pcm_bytes: bytes) -> None:
    with wave.open(path, "wb") as wf:
        wf.setnchannels(CHANNELS)
        wf.setsampwidth(BYTES_PER_SAMPLE)
        wf.setframerate(SAMPLE_RATE)
        wf.writeframes(pcm_bytes)


class Transcriber:
    """Speech-to-text for captured WAV files.

    ``openai`` posts the file to the hosted transcription endpoint. ``local``
    runs faster-whisper in a worker thread; the model is loaded once, lazily,
    the first time it is needed. Failures yield an empty transcript.
    """

    def __init__(
        self,
        backend: str = BACKEND_OPENAI,
        *,
        api_key: Optional[str] = None,
        model: str = "whisper-1",
        local_model: str = "small",
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self.backend = backend
        self.model = model
        self.local_model = local_model
        self._client = client
        if self._client is None and backend == BACKEND_OPENAI and api_key:
            self._client = AsyncOpenAI(api_key=api_key)
        self._whisper: Any = None
        self._whisper_lock = asyncio.Lock()

    @property
    def available(self) -> bool:
        return self.backend == BACKEND_LOCAL or self._client is not None

    async def transcribe(self, wav_path: str) -> str:
        try:
            if self.backend == BACKEND_LOCAL:
                return await self._transcribe_local(wav_path)
            return await self._transcribe_remote(wav_path)
        except Exception as exc:
            log.warning("Transcription via %s failed: %s", self.backend, exc)
            return ""

    async def _transcribe_remote(self, wav_path: str) -> str:
        if self._client is None:
            log.debug("No transcription API key configured; skipping %s", wav_path)
            return ""
        with open(wav_path, "rb") as wav_file:
            resp = await self._client.audio.transcriptions.create(
                model=self.model,
                file=wav_file,
            )
        text = resp.get("text") if isinstance(resp, dict) else getattr(resp, "text", None)
        return _normalize_text(text or "")

    async def _load_whisper_model(self) -> Any:
        async with self._whisper_lock:
            if self._whisper is not None:
                return self._whisper

            def _load():
                from faster_whisper import WhisperModel

                # Prefer int8 on CPU; fall back to float32 if needed
                try:
                    return WhisperModel(self.local_model, device="auto", compute_type="int8")
                except Exception:
                    return WhisperModel(self.local_model, device="cpu", compute_type="float32")

            self._whisper = await asyncio.to_thread(_load)
            log.info("Loaded local whisper model %s", self.local_model)
            return self._whisper

    async def _transcribe_local(self, wav_path: str) -> str:
        model = await self._load_whisper_model()

        def _run() -> str:
            segments, _info = model.transcribe(
                wav_path,
                vad_filter=False,
                condition_on_previous_text=False,
            )
            return " ".join(_normalize_text(seg.text) for seg in segments if seg.text)

        return _normalize_text(await asyncio.to_thread(_run))

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
