from __future__ import annotations

import pytest

from modules.moderation.verdict import (
    Action,
    Category,
    Severity,
    Verdict,
    extract_json_object,
    normalize_verdict,
)


@pytest.mark.parametrize("raw", [None, "", "not json at all", 42, ["safe"], "[1, 2]", b"\xff\xfe"])
def test_garbage_input_normalizes_to_conservative_verdict(raw):
    verdict = normalize_verdict(raw)

    assert verdict.safe is False
    assert verdict.version == "1.0"
    assert verdict.category is Category.OTHER
    assert verdict.suggested_action is Action.DELETE
    assert verdict.severity is Severity.MEDIUM
    assert verdict.confidence == 0.85
    assert verdict.rationale == "normalized"


def test_safe_payload_defaults_to_allow():
    verdict = normalize_verdict({"safe": True})

    assert verdict.suggested_action is Action.ALLOW
    assert verdict.severity is Severity.LOW
    assert verdict.confidence == 0.6


def test_json_embedded_in_prose_and_code_fence():
    text = (
        "Sure! Here is the verdict:\n```json\n"
        '{"safe": false, "category": "grooming", "severity": "critical", '
        '"suggested_action": "ban", "confidence": 0.97, "rationale": "asks to {meet} alone"}\n```'
    )

    verdict = normalize_verdict(text)

    assert verdict.safe is False
    assert verdict.category is Category.GROOMING
    assert verdict.severity is Severity.CRITICAL
    assert verdict.suggested_action is Action.BAN
    assert verdict.confidence == pytest.approx(0.97)
    assert verdict.rationale == "asks to {meet} alone"


def test_extract_json_object_ignores_braces_in_strings():
    text = 'prefix {"a": "}", "b": {"c": 1}} suffix {"d": 2}'
    assert extract_json_object(text) == '{"a": "}", "b": {"c": 1}}'


def test_extract_json_object_unbalanced():
    assert extract_json_object('{"safe": true') is None
    assert extract_json_object("no braces") is None


def test_stray_brace_before_the_object_is_skipped():
    text = 'Sure :{ here you go {"safe": true, "confidence": 0.9, "category": "none"}'
    assert extract_json_object(text) == '{"safe": true, "confidence": 0.9, "category": "none"}'

    verdict = normalize_verdict(text)
    assert verdict.safe is True
    assert verdict.category is Category.NONE
    assert verdict.confidence == 0.9


@pytest.mark.parametrize(
    "action, expected",
    [
        ("ban", Severity.CRITICAL),
        ("kick", Severity.HIGH),
        ("timeout_1h", Severity.HIGH),
        ("timeout_10m", Severity.MEDIUM),
        ("delete", Severity.MEDIUM),
        ("warn", Severity.LOW),
        ("allow", Severity.LOW),
    ],
)
def test_severity_derived_from_action_when_missing(action, expected):
    verdict = normalize_verdict({"safe": False, "suggested_action": action, "severity": "extreme"})
    assert verdict.severity is expected


def test_string_safe_is_not_trusted():
    verdict = normalize_verdict({"safe": "true", "category": "none"})
    assert verdict.safe is False
    assert verdict.category is Category.NONE


@pytest.mark.parametrize(
    "confidence, expected",
    [(True, 0.85), ("0.9", 0.85), (float("nan"), 0.85), (1.7, 1.0), (-3, 0.0), (0.42, 0.42)],
)
def test_confidence_coercion(confidence, expected):
    verdict = normalize_verdict({"confidence": confidence})
    assert verdict.confidence == pytest.approx(expected)


def test_enum_strings_are_case_insensitive_and_aliases_accepted():
    verdict = normalize_verdict(
        {
            "safe": False,
            "category": "  Hate_Harassment ",
            "suggestedAction": "KICK",
            "schemaVersion": "1.1",
        }
    )

    assert verdict.category is Category.HATE_HARASSMENT
    assert verdict.suggested_action is Action.KICK
    assert verdict.severity is Severity.HIGH
    assert verdict.version == "1.1"


def test_unknown_category_becomes_other():
    assert normalize_verdict({"category": "spaceships"}).category is Category.OTHER


def test_existing_verdict_round_trips_and_is_frozen():
    verdict = normalize_verdict({"safe": True, "confidence": 0.9, "rationale": "fine"})

    again = normalize_verdict(verdict)

    assert again == verdict
    assert isinstance(again, Verdict)
    with pytest.raises(Exception):
        verdict.safe = False  # type: ignore[misc]


def test_with_rationale_suffix_returns_new_verdict():
    verdict = normalize_verdict({"safe": False, "rationale": "blood"})
    updated = verdict.with_rationale_suffix("_frames:3")

    assert updated.rationale == "blood_frames:3"
    assert verdict.rationale == "blood"
