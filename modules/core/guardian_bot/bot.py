from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp
import discord
from discord.ext import commands

from modules.ai import ClassificationClient
from modules.core.config import RuntimeConfig
from modules.core.guardian_bot.background import ExtensionLoaderMixin
from modules.moderation.classifiers import ContentClassifier
from modules.moderation.dispatch import MessageModerationPipeline
from modules.moderation.service import ModerationService

_logger = logging.getLogger(__name__)


class GuardianBot(ExtensionLoaderMixin, commands.Bot):
    """Discord client wiring the moderation engine into the gateway."""

    def __init__(self, config: RuntimeConfig) -> None:
        intents = discord.Intents.default()
        intents.members = True
        intents.message_content = True
        intents.voice_states = True

        super().__init__(
            command_prefix=lambda _, __: [],
            intents=intents,
            help_command=None,
        )

        self.config = config
        self._log_cog_loads = config.log_cog_loads
        self._command_tree_sync_task: asyncio.Task[None] | None = None
        self.http_session: Optional[aiohttp.ClientSession] = None
        self.classification_client: Optional[ClassificationClient] = None
        self.classifier: Optional[ContentClassifier] = None
        self.moderation: Optional[ModerationService] = None
        self.pipeline: Optional[MessageModerationPipeline] = None

    async def setup_hook(self) -> None:  # type: ignore[override]
        print("[STARTUP] setup_hook invoked")
        moderation = self.config.moderation

        self.http_session = aiohttp.ClientSession()
        self.classification_client = ClassificationClient(
            api_key=moderation.api_key or None,
            model=moderation.model,
        )
        if not self.classification_client.available:
            _logger.warning("No OpenAI API key configured; classification runs in fallback mode")

        self.classifier = ContentClassifier(
            self.classification_client,
            max_frames=moderation.video_max_frames,
            download_timeout=moderation.video_download_timeout,
            url_resolve_timeout=moderation.url_resolve_timeout,
            session=self.http_session,
        )
        self.moderation = ModerationService(self, moderation.audit_channel_id)
        self.pipeline = MessageModerationPipeline(self.classifier, self.moderation)
        print("[STARTUP] Moderation engine ready")

        await self._load_extensions()
        self._schedule_command_tree_sync()
        print("[STARTUP] Extensions loaded")

    async def on_ready(self) -> None:
        user = self.user
        print(f"[READY] Logged in as {user} ({getattr(user, 'id', '?')})")

    async def close(self) -> None:
        try:
            await super().close()
        finally:
            if self.classification_client is not None:
                try:
                    await self.classification_client.close()
                except Exception:
                    _logger.exception("Failed to close classification client")
            if self.http_session is not None and not self.http_session.closed:
                await self.http_session.close()
