from __future__ import annotations

import json
import math
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict

__all__ = [
    "SCHEMA_VERSION",
    "DEFAULT_RATIONALE",
    "Category",
    "Severity",
    "Action",
    "Verdict",
    "SEVERITY_FOR_ACTION",
    "extract_json_object",
    "normalize_verdict",
]

SCHEMA_VERSION = "1.0"
DEFAULT_RATIONALE = "normalized"
SAFE_DEFAULT_CONFIDENCE = 0.6
UNSAFE_DEFAULT_CONFIDENCE = 0.85


class Category(str, Enum):
    NONE = "none"
    PROFANITY = "profanity"
    SEXUAL_CONTENT = "sexual_content"
    GROOMING = "grooming"
    SELF_HARM = "self_harm"
    HATE_HARASSMENT = "hate_harassment"
    VIOLENT_CONTENT = "violent_content"
    PERSONAL_INFO_SOLICITATION = "personal_info_solicitation"
    SCAMS_MALWARE = "scams_malware"
    DANGEROUS_ACTS = "dangerous_acts"
    DRUGS_ALCOHOL_GAMBLING = "drugs_alcohol_gambling"
    OTHER = "other"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


class Action(str, Enum):
    ALLOW = "allow"
    WARN = "warn"
    DELETE = "delete"
    TIMEOUT_10M = "timeout_10m"
    TIMEOUT_1H = "timeout_1h"
    KICK = "kick"
    BAN = "ban"


SEVERITY_FOR_ACTION: Mapping[Action, Severity] = {
    Action.BAN: Severity.CRITICAL,
    Action.KICK: Severity.HIGH,
    Action.TIMEOUT_1H: Severity.HIGH,
    Action.TIMEOUT_10M: Severity.MEDIUM,
    Action.DELETE: Severity.MEDIUM,
    Action.WARN: Severity.LOW,
    Action.ALLOW: Severity.LOW,
}


class Verdict(BaseModel):
    """Fully populated classifier verdict. Build it with :func:`normalize_verdict`."""

    model_config = ConfigDict(frozen=True)

    version: str = SCHEMA_VERSION
    safe: bool
    confidence: float
    category: Category
    severity: Severity
    suggested_action: Action
    rationale: str = DEFAULT_RATIONALE

    def with_rationale_suffix(self, suffix: str) -> "Verdict":
        return self.model_copy(update={"rationale": f"{self.rationale}{suffix}"})


def extract_json_object(text: str) -> Optional[str]:
    """Return the first balanced ``{...}`` span in ``text`` or ``None``.

    Braces inside JSON string literals are ignored so prose such as
    ``"rationale": "uses {curly} words"`` does not end the span early.
    """
    if not isinstance(text, str):
        return None
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for idx in range(start, len(text)):
            char = text[idx]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : idx + 1]
        start = text.find("{", start + 1)
    return None


def _coerce_mapping(raw: Any) -> dict[str, Any]:
    if isinstance(raw, Verdict):
        return raw.model_dump(mode="json")
    if isinstance(raw, Mapping):
        return dict(raw)
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        span = extract_json_object(raw)
        if span is None:
            return {}
        try:
            parsed = json.loads(span)
        except (TypeError, ValueError):
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


def _enum_value(enum_cls, value: Any):
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        return None
    cleaned = value.strip().lower()
    try:
        return enum_cls(cleaned)
    except ValueError:
        return None


def _first_present(payload: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = payload.get(key)
        if value is not None:
            return value
    return None


def normalize_verdict(raw: Any) -> Verdict:
    """Coerce arbitrary classifier output into a complete :class:`Verdict`.

    Never raises. Missing or invalid fields fall back to conservative
    defaults; ``safe`` is false unless the payload says otherwise with a real
    boolean. Later defaults depend on earlier ones, so the fill order is
    ``safe``, ``version``, ``category``, ``suggested_action``, ``severity``,
    ``confidence`` and ``rationale``.
    """
    payload = _coerce_mapping(raw)

    safe = payload.get("safe")
    if not isinstance(safe, bool):
        safe = False

    version = _first_present(payload, "version", "schemaVersion", "schema_version")
    if not isinstance(version, str) or not version.strip():
        version = SCHEMA_VERSION

    category = _enum_value(Category, payload.get("category")) or Category.OTHER

    action = _enum_value(
        Action,
        _first_present(payload, "suggested_action", "suggestedAction"),
    )
    if action is None:
        action = Action.ALLOW if safe else Action.DELETE

    severity = _enum_value(Severity, payload.get("severity"))
    if severity is None:
        severity = SEVERITY_FOR_ACTION[action]

    confidence = payload.get("confidence")
    if (
        isinstance(confidence, bool)
        or not isinstance(confidence, (int, float))
        or math.isnan(confidence)
    ):
        confidence = SAFE_DEFAULT_CONFIDENCE if safe else UNSAFE_DEFAULT_CONFIDENCE
    confidence = min(1.0, max(0.0, float(confidence)))

    rationale = payload.get("rationale")
    if not isinstance(rationale, str) or not rationale.strip():
        rationale = DEFAULT_RATIONALE

    return Verdict(
        version=version,
        safe=safe,
        confidence=confidence,
        category=category,
        severity=severity,
        suggested_action=action,
        rationale=rationale,
    )
