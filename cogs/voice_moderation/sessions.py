from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

import discord

from modules.core.config import VoiceConfig
from modules.utils.discord_utils import safe_get_member

from .capture import SpeakerCapture
from .sink import SpeakerRouterSink
from .state import SpeakerDebounce, VoiceSession
from .voice_io import connect_voice

log = logging.getLogger(__name__)

Connector = Callable[[Any], Awaitable[Any]]
SinkFactory = Callable[[asyncio.AbstractEventLoop, Callable[[Any], None]], Any]


def _human_count(channel) -> int:
    return sum(1 for m in (getattr(channel, "members", None) or []) if not getattr(m, "bot", False))


class VoiceSessionManager:
    """Registry of live voice sessions, at most one per guild.

    Sessions open when a human enters the configured target channel and close
    once that channel is gone or has no humans left. Opens for one guild are
    serialized so concurrent joins share a single connection.
    """

    def __init__(
        self,
        config: VoiceConfig,
        capture: SpeakerCapture,
        *,
        connector: Connector = connect_voice,
        sink_factory: SinkFactory = SpeakerRouterSink,
    ) -> None:
        self.config = config
        self.capture = capture
        self._connector = connector
        self._sink_factory = sink_factory
        self.sessions: dict[int, VoiceSession] = {}
        self._locks: dict[int, asyncio.Lock] = {}
        self._missing_target_warned: set[int] = set()

    def _lock_for(self, guild_id: int) -> asyncio.Lock:
        lock = self._locks.get(guild_id)
        if lock is None:
            lock = self._locks[guild_id] = asyncio.Lock()
        return lock

    def get(self, guild_id: int) -> Optional[VoiceSession]:
        return self.sessions.get(guild_id)

    def is_active(self, session: VoiceSession) -> bool:
        return not session.closed and self.sessions.get(session.guild_id) is session

    def resolve_target_channel(self, guild) -> Optional[Any]:
        """The configured voice channel: exact id first, else case-insensitive name."""
        channel = None
        if self.config.channel_id is not None:
            channel = guild.get_channel(self.config.channel_id)
        elif self.config.channel_name:
            wanted = self.config.channel_name.lower()
            channel = next(
                (c for c in getattr(guild, "voice_channels", []) if c.name.lower() == wanted),
                None,
            )

        if channel is None:
            if guild.id not in self._missing_target_warned:
                self._missing_target_warned.add(guild.id)
                log.info("No target voice channel resolved in guild %s", guild.id)
            return None
        self._missing_target_warned.discard(guild.id)
        return channel

    async def handle_voice_state_update(self, member, before, after) -> None:
        before_channel = getattr(before, "channel", None)
        after_channel = getattr(after, "channel", None)
        guild = member.guild

        if before_channel is None and after_channel is not None:
            if not member.bot:
                await self.ensure_joined(guild, after_channel)
            return

        if (
            before_channel is not None
            and after_channel is not None
            and before_channel.id != after_channel.id
            and not member.bot
        ):
            await self.ensure_joined(guild, after_channel)

        await self.maybe_leave_if_empty(guild)

    async def ensure_joined(self, guild, channel) -> Optional[VoiceSession]:
        target = self.resolve_target_channel(guild)
        if target is None or getattr(channel, "id", None) != target.id:
            return None
        existing = self.sessions.get(guild.id)
        if existing is not None:
            return existing
        return await self.open_session(target)

    async def open_session(self, channel) -> VoiceSession:
        guild = channel.guild
        async with self._lock_for(guild.id):
            existing = self.sessions.get(guild.id)
            if existing is not None and existing.channel_id == channel.id:
                return existing
            if existing is not None:
                await self._teardown(existing, "switching channel")

            voice_client = await self._connector(channel)
            session: Optional[VoiceSession] = None

            def on_speaking_start(member) -> None:
                if session is not None:
                    self.on_speaking_start(session, member)

            sink = self._sink_factory(asyncio.get_running_loop(), on_speaking_start)
            session = VoiceSession(
                guild_id=guild.id,
                channel_id=channel.id,
                voice_client=voice_client,
                sink=sink,
                debounce=SpeakerDebounce(self.config.debounce_ms),
            )
            listen = getattr(voice_client, "listen", None)
            if callable(listen):
                listen(sink)
            self.sessions[guild.id] = session
            log.info("Joined voice channel %s in guild %s", channel.id, guild.id)
            return session

    async def maybe_leave_if_empty(self, guild) -> None:
        session = self.sessions.get(guild.id)
        if session is None:
            return
        channel = guild.get_channel(session.channel_id)
        if channel is None:
            await self.close_session(guild.id, "channel missing")
            return
        humans = _human_count(channel)
        log.debug("Voice channel %s humans=%s", channel.id, humans)
        if humans == 0:
            await self.close_session(guild.id, "no humans")

    async def close_session(self, guild_id: int, reason: str = "requested") -> bool:
        async with self._lock_for(guild_id):
            session = self.sessions.get(guild_id)
            if session is None:
                return False
            await self._teardown(session, reason)
            return True

    async def _teardown(self, session: VoiceSession, reason: str) -> None:
        session.closed = True
        if self.sessions.get(session.guild_id) is session:
            del self.sessions[session.guild_id]
        try:
            stop = getattr(session.voice_client, "stop_listening", None)
            if callable(stop):
                stop()
            await session.voice_client.disconnect(force=True)
        except (discord.HTTPException, discord.ClientException, asyncio.TimeoutError) as exc:
            log.warning("Voice disconnect in guild %s failed: %s", session.guild_id, exc)
        finally:
            session.sink.cleanup()
        log.info(
            "Left voice channel %s in guild %s (%s); %d capture(s) still in flight",
            session.channel_id,
            session.guild_id,
            reason,
            len(session.tasks),
        )

    async def close_all(self) -> None:
        for guild_id in list(self.sessions):
            await self.close_session(guild_id, "shutdown")

    def on_speaking_start(self, session: VoiceSession, member) -> Optional[asyncio.Task]:
        """Runs on the event loop for every speech-start in ``session``."""
        if not self.is_active(session):
            return None
        user_id = getattr(member, "id", None)
        if user_id is None or not session.debounce.try_trigger(user_id):
            return None
        task = asyncio.create_task(self._run_capture(session, user_id))
        session.track(task)
        return task

    async def _run_capture(self, session: VoiceSession, user_id: int) -> None:
        try:
            guild = session.guild
            member = await safe_get_member(guild, user_id) if guild is not None else None
            if member is None or member.bot:
                return
            await self.capture.run(session, member)
        except Exception:
            log.exception("Voice capture for %s in guild %s failed", user_id, session.guild_id)
