from __future__ import annotations

import asyncio
import logging
from typing import Optional

import discord

log = logging.getLogger(__name__)


async def safe_get_channel(client: discord.Client, channel_id: int) -> Optional[discord.abc.GuildChannel]:
    chan = client.get_channel(channel_id)
    if chan is None:
        try:
            chan = await client.fetch_channel(channel_id)
        except discord.HTTPException as e:
            log.warning("failed to fetch channel %s: %s", channel_id, e)
    return chan


async def safe_get_member(
    guild: discord.Guild,
    user_id: int,
    *,
    timeout: float | None = 5.0,
) -> Optional[discord.Member]:
    """
    Safely get a Member from cache or fetch.

    Returns None if the user cannot be fetched.
    """
    member = guild.get_member(user_id)
    if member is not None:
        return member

    try:
        fetch_coro = guild.fetch_member(user_id)
        return (
            await asyncio.wait_for(fetch_coro, timeout=timeout)
            if timeout is not None
            else await fetch_coro
        )
    except (discord.NotFound, discord.Forbidden):
        return None
    except asyncio.TimeoutError:
        log.warning(
            "[safe_get_member] fetch_member(%s) timed out after %ss",
            user_id,
            timeout,
        )
        return None
    except discord.HTTPException as e:
        log.warning("[safe_get_member] fetch_member(%s) failed: %s", user_id, e)
        return None
