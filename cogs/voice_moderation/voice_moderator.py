from __future__ import annotations

import asyncio
import logging

import discord
from discord import Interaction, app_commands
from discord.ext import commands

from .capture import SpeakerCapture
from .sessions import VoiceSessionManager
from .transcriber import Transcriber

log = logging.getLogger(__name__)


class VoiceModeratorCog(commands.Cog):
    """Joins the target voice channel with its members and moderates what is said."""

    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot
        voice = bot.config.voice
        self.transcriber = Transcriber(
            voice.transcription_backend,
            api_key=bot.config.moderation.api_key or None,
            model=voice.transcription_model,
            local_model=voice.local_whisper_model,
        )
        if not self.transcriber.available:
            log.warning("No transcription API key configured; voice captures will be skipped")
        self.capture = SpeakerCapture(
            self.transcriber,
            bot.classifier,
            bot.moderation,
            is_active=lambda session: self.sessions.is_active(session),
            silence_ms=voice.silence_ms,
            max_capture_seconds=voice.max_capture_seconds,
        )
        self.sessions = VoiceSessionManager(voice, self.capture)

    async def cog_unload(self) -> None:
        await self.sessions.close_all()
        await self.transcriber.close()

    @commands.Cog.listener()
    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        try:
            await self.sessions.handle_voice_state_update(member, before, after)
        except Exception:
            log.exception("Voice state handling failed in guild %s", member.guild.id)

    voiceguard_group = app_commands.Group(
        name="voiceguard",
        description="Manually start or stop voice moderation.",
        default_permissions=discord.Permissions(move_members=True),
        guild_only=True,
    )

    @voiceguard_group.command(
        name="join",
        description="Join your current voice channel and start listening.",
    )
    async def join(self, interaction: Interaction) -> None:
        voice_state = getattr(interaction.user, "voice", None)
        channel = getattr(voice_state, "channel", None)
        if channel is None:
            await interaction.response.send_message("Join a voice channel first.", ephemeral=True)
            return

        await interaction.response.defer(ephemeral=True, thinking=True)
        try:
            await self.sessions.open_session(channel)
        except (discord.ClientException, discord.HTTPException, asyncio.TimeoutError) as exc:
            log.warning("Manual voice join failed in guild %s: %s", channel.guild.id, exc)
            await interaction.followup.send(f"Couldn't join voice: {exc}", ephemeral=True)
            return
        await interaction.followup.send(
            f"Joined {channel.mention}. Listening.", ephemeral=True
        )

    @voiceguard_group.command(
        name="leave",
        description="Stop listening and leave the voice channel.",
    )
    async def leave(self, interaction: Interaction) -> None:
        closed = await self.sessions.close_session(interaction.guild_id, "manual leave")
        message = "Left the voice channel." if closed else "I'm not in a voice channel."
        await interaction.response.send_message(message, ephemeral=True)


async def setup_voice_moderation(bot: commands.Bot):
    await bot.add_cog(VoiceModeratorCog(bot))
