from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import discord

from modules.utils.discord_utils import safe_get_channel

from .verdict import Severity

log = logging.getLogger(__name__)

EMBED_TITLE = "Kojo Moderation Event"
PREVIEW_LIMIT = 400
FIELD_VALUE_LIMIT = 1024
_NOT_AVAILABLE = "N/A"

SEVERITY_COLORS: dict[Severity, discord.Color] = {
    Severity.CRITICAL: discord.Color(0xFF0033),
    Severity.HIGH: discord.Color(0xFF6600),
    Severity.MEDIUM: discord.Color(0xFFCC00),
    Severity.LOW: discord.Color(0x00CC66),
}


@dataclass(slots=True)
class ModerationEvent:
    user_id: Optional[int]
    user_tag: Optional[str]
    channel_id: Optional[int]
    category: str
    severity: Severity
    action: str
    confidence: float
    rationale: str
    enforcement_note: Optional[str] = None
    content_preview: str = ""
    link: Optional[str] = None


def _clip(value: str, limit: int = FIELD_VALUE_LIMIT) -> str:
    if len(value) <= limit:
        return value
    return value[: limit - 3] + "..."


def _user_field(event: ModerationEvent) -> str:
    if event.user_tag and event.user_id is not None:
        return f"{event.user_tag} ({event.user_id})"
    if event.user_id is not None:
        return str(event.user_id)
    return "Unknown"


def build_embed(event: ModerationEvent) -> discord.Embed:
    embed = discord.Embed(
        title=EMBED_TITLE,
        color=SEVERITY_COLORS.get(event.severity, SEVERITY_COLORS[Severity.LOW]),
    )
    embed.add_field(name="User", value=_user_field(event), inline=False)
    embed.add_field(
        name="Channel",
        value=f"<#{event.channel_id}>" if event.channel_id else "Unknown",
        inline=True,
    )
    embed.add_field(name="Category", value=event.category or _NOT_AVAILABLE, inline=True)
    embed.add_field(name="Severity", value=event.severity.value, inline=True)
    embed.add_field(name="Action", value=event.action or _NOT_AVAILABLE, inline=True)
    embed.add_field(name="Confidence", value=f"{event.confidence:g}", inline=True)
    embed.add_field(name="Rationale", value=_clip(event.rationale or _NOT_AVAILABLE), inline=False)
    if event.enforcement_note:
        embed.add_field(name="Enforcement Note", value=_clip(event.enforcement_note), inline=False)
    if event.content_preview:
        preview = event.content_preview[:PREVIEW_LIMIT].replace("```", "'''")
        embed.add_field(name="Content (preview)", value=f"```{preview}```", inline=False)
    if event.link:
        embed.add_field(name="Link", value=_clip(event.link), inline=False)
    return embed


async def post_moderation_event(
    client: discord.Client,
    channel_id: Optional[int],
    event: ModerationEvent,
) -> bool:
    """Send ``event`` to the audit channel. Delivery failures are logged, never raised."""
    if not channel_id:
        return False

    try:
        channel = await safe_get_channel(client, channel_id)
        if channel is None:
            log.warning("Audit channel %s not found", channel_id)
            return False
        await channel.send(embed=build_embed(event))
    except discord.Forbidden:
        log.warning("Missing permission to post in audit channel %s", channel_id)
        return False
    except discord.HTTPException as exc:
        log.warning("HTTP error while posting to audit channel %s: %s", channel_id, exc)
        return False
    except Exception:
        log.exception("Unexpected error posting to audit channel %s", channel_id)
        return False
    return True
