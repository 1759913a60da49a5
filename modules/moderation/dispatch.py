from __future__ import annotations

import logging
from typing import Optional

import discord

from modules.media.attachments import FILE_TYPE_IMAGE, FILE_TYPE_VIDEO, attachment_media_kind
from modules.utils.url_utils import first_url

from .classifiers import ContentClassifier
from .policy import decide, requires_moderation
from .service import ModerationOutcome, ModerationService, ModerationTarget
from .verdict import Verdict

log = logging.getLogger(__name__)


def message_context(message: discord.Message) -> str:
    guild = getattr(message, "guild", None)
    channel = getattr(message, "channel", None)
    guild_part = guild.id if guild is not None else "DM"
    return f"guild={guild_part} channel={getattr(channel, 'id', None)}"


class MessageModerationPipeline:
    """Run a message through text, link and attachment checks in that order.

    The first flagged verdict is acted on and ends the run; later checks are
    never started for that message.
    """

    def __init__(self, classifier: ContentClassifier, service: ModerationService) -> None:
        self.classifier = classifier
        self.service = service

    async def handle_message(self, message: discord.Message) -> Optional[ModerationOutcome]:
        author = getattr(message, "author", None)
        if author is None or getattr(author, "bot", False):
            return None

        content = message.content or ""
        context = message_context(message)

        if content.strip():
            verdict = await self.classifier.classify_text(content, context)
            outcome = await self._act_if_flagged(message, verdict)
            if outcome is not None:
                return outcome

        url = first_url(content)
        if url:
            verdict = await self.classifier.classify_url(url, context)
            outcome = await self._act_if_flagged(message, verdict)
            if outcome is not None:
                return outcome

        for attachment in getattr(message, "attachments", None) or []:
            kind = attachment_media_kind(attachment)
            if kind == FILE_TYPE_IMAGE:
                verdict = await self.classifier.classify_image(attachment.url)
            elif kind == FILE_TYPE_VIDEO:
                verdict = await self.classifier.classify_video(
                    attachment.url, getattr(attachment, "filename", None)
                )
            else:
                continue
            outcome = await self._act_if_flagged(message, verdict)
            if outcome is not None:
                return outcome

        return None

    async def _act_if_flagged(
        self,
        message: discord.Message,
        verdict: Verdict,
    ) -> Optional[ModerationOutcome]:
        if not requires_moderation(verdict, decide(verdict)):
            return None
        return await self.service.apply(ModerationTarget.from_message(message), verdict)
