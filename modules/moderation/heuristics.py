from __future__ import annotations

__all__ = ["PII_SOLICITATION_KEYWORDS", "risky_pii_heuristic"]

# Phrases that commonly open a request for a minor's identifying details or an
# off-platform channel. Used only when the classifier is unreachable.
PII_SOLICITATION_KEYWORDS: tuple[str, ...] = (
    "home address",
    "address",
    "phone number",
    "whatsapp",
    "snapchat",
    "telegram",
    "send pics",
    "nudes",
    "meet up",
    "where do you live",
    "what school",
    "which school",
    "class schedule",
    "come to my",
    "dm me privately",
    "move to",
)


def risky_pii_heuristic(text: str | None) -> bool:
    if not text:
        return False
    lowered = text.lower()
    return any(keyword in lowered for keyword in PII_SOLICITATION_KEYWORDS)
