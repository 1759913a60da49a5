from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from .verdict import Action, Category, Severity, Verdict

__all__ = [
    "LOW_CONFIDENCE_THRESHOLD",
    "LOW_CONFIDENCE_REASON",
    "PolicyEntry",
    "Decision",
    "ACTION_POLICY",
    "policy_for",
    "decide",
    "requires_moderation",
]

LOW_CONFIDENCE_THRESHOLD = 0.55
LOW_CONFIDENCE_REASON = "low_confidence"


@dataclass(frozen=True, slots=True)
class PolicyEntry:
    severity: Severity
    action: Action


@dataclass(frozen=True, slots=True)
class Decision:
    severity: Severity
    action: Action
    reason: Optional[str] = None

    @property
    def is_allow(self) -> bool:
        return self.action is Action.ALLOW


# Authoritative consequences per category. The classifier's own suggestion
# never reaches enforcement; retune here, not in the prompts.
ACTION_POLICY: Mapping[Category, PolicyEntry] = {
    Category.GROOMING: PolicyEntry(Severity.CRITICAL, Action.BAN),
    Category.PERSONAL_INFO_SOLICITATION: PolicyEntry(Severity.HIGH, Action.BAN),
    Category.SEXUAL_CONTENT: PolicyEntry(Severity.HIGH, Action.KICK),
    Category.HATE_HARASSMENT: PolicyEntry(Severity.HIGH, Action.KICK),
    Category.VIOLENT_CONTENT: PolicyEntry(Severity.HIGH, Action.KICK),
    Category.SCAMS_MALWARE: PolicyEntry(Severity.HIGH, Action.KICK),
    Category.SELF_HARM: PolicyEntry(Severity.HIGH, Action.TIMEOUT_1H),
    Category.DRUGS_ALCOHOL_GAMBLING: PolicyEntry(Severity.MEDIUM, Action.DELETE),
    Category.DANGEROUS_ACTS: PolicyEntry(Severity.MEDIUM, Action.DELETE),
    Category.PROFANITY: PolicyEntry(Severity.LOW, Action.WARN),
    Category.NONE: PolicyEntry(Severity.MEDIUM, Action.DELETE),
    Category.OTHER: PolicyEntry(Severity.MEDIUM, Action.DELETE),
}


def policy_for(category: Category) -> PolicyEntry:
    return ACTION_POLICY.get(category, ACTION_POLICY[Category.OTHER])


def decide(verdict: Verdict) -> Decision:
    """Resolve the enforcement decision for a normalized verdict."""
    if verdict.safe and verdict.confidence < LOW_CONFIDENCE_THRESHOLD:
        return Decision(Severity.MEDIUM, Action.DELETE, LOW_CONFIDENCE_REASON)
    if not verdict.safe:
        entry = policy_for(verdict.category)
        return Decision(entry.severity, entry.action)
    return Decision(Severity.LOW, Action.ALLOW)


def requires_moderation(verdict: Verdict, decision: Optional[Decision] = None) -> bool:
    """True when a verdict should stop the pipeline and be acted on or audited."""
    decision = decision or decide(verdict)
    if not decision.is_allow:
        return True
    return not verdict.safe or verdict.severity is not Severity.LOW
