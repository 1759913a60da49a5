from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Awaitable, Callable, Mapping, Optional

import discord

from .verdict import Action

__all__ = [
    "REASON_PREFIX",
    "EnforcementResult",
    "EnforcementStep",
    "ENFORCEMENT_CHAINS",
    "can_ban",
    "can_kick",
    "can_timeout",
    "enforce",
]

log = logging.getLogger(__name__)

REASON_PREFIX = "Kojo"
TIMEOUT_1H = timedelta(hours=1)
TIMEOUT_10M = timedelta(minutes=10)


@dataclass(frozen=True, slots=True)
class EnforcementResult:
    applied: bool
    note: Optional[str] = None


def _bot_member(member) -> Optional[discord.Member]:
    guild = getattr(member, "guild", None)
    return getattr(guild, "me", None)


def _outranks(me, member) -> bool:
    guild = member.guild
    owner_id = getattr(guild, "owner_id", None)
    if member.id == owner_id:
        return False
    if me.id == owner_id:
        return True
    return me.top_role > member.top_role


def _has_permission(member, permission: str) -> bool:
    me = _bot_member(member)
    if me is None:
        return False
    perms = me.guild_permissions
    if not (getattr(perms, permission, False) or getattr(perms, "administrator", False)):
        return False
    return _outranks(me, member)


def can_ban(member) -> bool:
    return _has_permission(member, "ban_members")


def can_kick(member) -> bool:
    return _has_permission(member, "kick_members")


def can_timeout(member) -> bool:
    if getattr(member.guild_permissions, "administrator", False):
        return False
    return _has_permission(member, "moderate_members")


async def _ban(member: discord.Member, reason: str) -> None:
    await member.ban(reason=reason)


async def _kick(member: discord.Member, reason: str) -> None:
    await member.kick(reason=reason)


def _timeout(duration: timedelta) -> Callable[[discord.Member, str], Awaitable[None]]:
    async def _apply(member: discord.Member, reason: str) -> None:
        await member.timeout(duration, reason=reason)

    return _apply


@dataclass(frozen=True, slots=True)
class EnforcementStep:
    """One capability-gated attempt in an enforcement chain."""

    name: str
    capable: Callable[[discord.Member], bool]
    perform: Callable[[discord.Member, str], Awaitable[None]]
    note: Optional[str] = None


_BAN = EnforcementStep("ban", can_ban, _ban)
_KICK = EnforcementStep("kick", can_kick, _kick)
_KICK_FALLBACK = EnforcementStep("kick", can_kick, _kick, "kick fallback")
_TIMEOUT_1H = EnforcementStep("timeout_1h", can_timeout, _timeout(TIMEOUT_1H))
_TIMEOUT_1H_FALLBACK = EnforcementStep(
    "timeout_1h", can_timeout, _timeout(TIMEOUT_1H), "timeout fallback"
)
_TIMEOUT_10M = EnforcementStep("timeout_10m", can_timeout, _timeout(TIMEOUT_10M))

# Evaluated top-down; the first step whose capability check passes is applied.
ENFORCEMENT_CHAINS: Mapping[Action, tuple[EnforcementStep, ...]] = {
    Action.BAN: (_BAN, _KICK_FALLBACK, _TIMEOUT_1H_FALLBACK),
    Action.KICK: (_KICK, _TIMEOUT_1H_FALLBACK),
    Action.TIMEOUT_1H: (_TIMEOUT_1H,),
    Action.TIMEOUT_10M: (_TIMEOUT_10M,),
}

_EXHAUSTED_NOTES: Mapping[Action, str] = {
    Action.BAN: "not bannable/kickable/moderatable",
    Action.KICK: "not kickable/moderatable",
    Action.TIMEOUT_1H: "not moderatable",
    Action.TIMEOUT_10M: "not moderatable",
}


def _describe_error(exc: Exception) -> str:
    if isinstance(exc, discord.Forbidden):
        text = (exc.text or "").strip()
        return text or "Missing Permissions"
    if isinstance(exc, discord.HTTPException):
        text = (exc.text or "").strip()
        return text or f"HTTP {exc.status}"
    return str(exc).strip() or exc.__class__.__name__


async def enforce(
    member: Optional[discord.Member],
    action: Action,
    reason: str,
) -> EnforcementResult:
    """Apply ``action`` to ``member`` following the capability fallback chain.

    Non-punitive actions (``delete``, ``warn``, ``allow``) are always reported
    as applied. Platform failures are returned as ``applied=False`` with the
    error text in ``note``; they are never raised.
    """
    chain = ENFORCEMENT_CHAINS.get(action)
    if chain is None:
        return EnforcementResult(applied=True)

    audit_reason = f"{REASON_PREFIX}: {reason}"
    if member is None:
        return EnforcementResult(applied=False, note=_EXHAUSTED_NOTES[action])

    try:
        for step in chain:
            if not step.capable(member):
                continue
            await step.perform(member, audit_reason)
            log.info(
                "Applied %s to member %s in guild %s (requested %s)",
                step.name,
                member.id,
                getattr(member.guild, "id", None),
                action.value,
            )
            return EnforcementResult(applied=True, note=step.note)
    except Exception as exc:
        log.warning(
            "Enforcement %s failed for member %s: %s",
            action.value,
            getattr(member, "id", None),
            exc,
        )
        return EnforcementResult(applied=False, note=_describe_error(exc))

    return EnforcementResult(applied=False, note=_EXHAUSTED_NOTES[action])
