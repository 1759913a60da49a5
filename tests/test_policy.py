from __future__ import annotations

import pytest

from modules.moderation.policy import (
    ACTION_POLICY,
    LOW_CONFIDENCE_REASON,
    Decision,
    decide,
    requires_moderation,
)
from modules.moderation.verdict import Action, Category, Severity, normalize_verdict


def _verdict(**fields):
    return normalize_verdict(fields)


def test_policy_table_covers_every_category():
    assert set(ACTION_POLICY) == set(Category)


def test_low_confidence_safe_verdict_is_deleted():
    decision = decide(_verdict(safe=True, confidence=0.4))

    assert decision == Decision(Severity.MEDIUM, Action.DELETE, LOW_CONFIDENCE_REASON)


def test_confident_safe_verdict_is_allowed():
    decision = decide(_verdict(safe=True, confidence=0.9, category="grooming"))

    assert decision.action is Action.ALLOW
    assert decision.severity is Severity.LOW
    assert decision.reason is None


def test_grooming_overrides_classifier_suggestion():
    verdict = _verdict(
        safe=False,
        category="grooming",
        severity="low",
        suggested_action="warn",
        confidence=0.99,
    )

    decision = decide(verdict)

    assert decision.severity is Severity.CRITICAL
    assert decision.action is Action.BAN
    assert decision.reason is None


@pytest.mark.parametrize("category", list(Category))
def test_unsafe_never_allows(category):
    for confidence in (0.0, 0.3, 0.55, 1.0):
        decision = decide(_verdict(safe=False, category=category.value, confidence=confidence))
        assert decision.action is not Action.ALLOW
        assert decision.action is ACTION_POLICY[category].action


def test_decide_ignores_fields_outside_safe_confidence_category():
    first = decide(_verdict(safe=False, category="scams_malware", severity="low", rationale="a"))
    second = decide(_verdict(safe=False, category="scams_malware", severity="critical", rationale="b"))

    assert first == second == Decision(Severity.HIGH, Action.KICK)


def test_requires_moderation_rule():
    assert requires_moderation(_verdict(safe=False))
    assert requires_moderation(_verdict(safe=True, confidence=0.3))
    assert requires_moderation(_verdict(safe=True, confidence=0.9, severity="medium"))
    assert not requires_moderation(_verdict(safe=True, confidence=0.9))
