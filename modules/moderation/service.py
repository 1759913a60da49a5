from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import discord

from modules.utils.discord_utils import safe_get_member

from .audit_log import ModerationEvent, post_moderation_event
from .enforcement import EnforcementResult, enforce
from .policy import Decision, decide
from .verdict import Verdict

log = logging.getLogger(__name__)


@dataclass(slots=True)
class ModerationTarget:
    """Who and what a moderation action is about."""

    guild: Optional[discord.Guild]
    author: Any
    channel_id: Optional[int]
    member: Optional[discord.Member] = None
    content_preview: str = ""
    message: Optional[discord.Message] = None
    link: Optional[str] = None

    @classmethod
    def from_message(cls, message: discord.Message) -> "ModerationTarget":
        author = message.author
        member = author if isinstance(author, discord.Member) else None
        channel = getattr(message, "channel", None)
        return cls(
            guild=message.guild,
            author=author,
            channel_id=getattr(channel, "id", None),
            member=member,
            content_preview=message.content or "",
            message=message,
            link=getattr(message, "jump_url", None),
        )


@dataclass(slots=True)
class ModerationOutcome:
    verdict: Verdict
    decision: Decision
    enforcement: EnforcementResult


class ModerationService:
    """Delete, sanction and audit one flagged piece of content."""

    def __init__(self, client: discord.Client, audit_channel_id: Optional[int]) -> None:
        self.client = client
        self.audit_channel_id = audit_channel_id

    async def apply(self, target: ModerationTarget, verdict: Verdict) -> ModerationOutcome:
        decision = decide(verdict)

        if not decision.is_allow and target.message is not None:
            await self._delete_message(target.message)

        member = await self._resolve_member(target)
        enforcement = await enforce(member, decision.action, verdict.category.value)

        author_id = getattr(target.author, "id", None) or getattr(member, "id", None)
        user_tag = str(target.author) if target.author is not None else None
        event = ModerationEvent(
            user_id=author_id,
            user_tag=user_tag,
            channel_id=target.channel_id,
            category=verdict.category.value,
            severity=verdict.severity,
            action=decision.action.value,
            confidence=verdict.confidence,
            rationale=verdict.rationale,
            enforcement_note=enforcement.note,
            content_preview=target.content_preview,
            link=target.link,
        )
        await post_moderation_event(self.client, self.audit_channel_id, event)

        log.info(
            "Moderated user %s in guild %s: %s/%s -> %s (applied=%s)",
            author_id,
            getattr(target.guild, "id", None),
            verdict.category.value,
            verdict.severity.value,
            decision.action.value,
            enforcement.applied,
        )
        return ModerationOutcome(verdict=verdict, decision=decision, enforcement=enforcement)

    async def _delete_message(self, message: discord.Message) -> None:
        try:
            await message.delete()
        except discord.NotFound:
            pass
        except (discord.Forbidden, discord.HTTPException) as exc:
            log.warning("Could not delete message %s: %s", getattr(message, "id", None), exc)

    async def _resolve_member(self, target: ModerationTarget) -> Optional[discord.Member]:
        if target.member is not None:
            return target.member
        author_id = getattr(target.author, "id", None)
        if target.guild is None or author_id is None:
            return None
        return await safe_get_member(target.guild, author_id)
