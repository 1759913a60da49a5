from __future__ import annotations

from types import SimpleNamespace

import pytest

from fakes import FakeChannel, FakeClient, FakeMember, FakeMessage, make_guild_with_bot, perms
from modules.ai import ClassificationClient
from modules.moderation import classifiers as classifiers_module
from modules.moderation.classifiers import ContentClassifier
from modules.moderation.dispatch import MessageModerationPipeline
from modules.moderation.service import ModerationService
from modules.moderation.verdict import Action, Category, Severity


class FakeCompletions:
    def __init__(self, content=None, exc=None):
        self.content = content
        self.exc = exc
        self.requests: list[dict] = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.exc is not None:
            raise self.exc
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(content=None, exc=None, model="gpt-4o"):
    completions = FakeCompletions(content, exc)
    fake_openai = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return ClassificationClient(api_key=None, model=model, client=fake_openai), completions


@pytest.mark.anyio
async def test_empty_text_is_fail_open_without_calling_service():
    client, completions = _client('{"safe": false}')
    verdict = await ContentClassifier(client).classify_text("   ")

    assert verdict.safe is True
    assert verdict.confidence == 0.95
    assert verdict.suggested_action is Action.ALLOW
    assert completions.requests == []


@pytest.mark.anyio
async def test_text_prompt_carries_context_and_parses_reply():
    client, completions = _client(
        'ok {"safe": false, "category": "hate_harassment", "severity": "high", '
        '"suggested_action": "kick", "confidence": 0.9, "rationale": "insult"}'
    )

    verdict = await ContentClassifier(client).classify_text("you are worthless", "guild=1 channel=2")

    assert verdict.category is Category.HATE_HARASSMENT
    request = completions.requests[0]
    assert request["model"] == "gpt-4o"
    assert request["temperature"] == 0.0
    assert request["max_tokens"] == 180
    assert request["messages"][1]["content"] == "Context: guild=1 channel=2\nMessage: you are worthless"


@pytest.mark.anyio
async def test_gpt5_models_use_completion_token_limit():
    client, completions = _client('{"safe": true, "confidence": 0.9}', model="gpt-5-mini")

    await ContentClassifier(client).classify_text("hello")

    request = completions.requests[0]
    assert "temperature" not in request
    assert request["max_completion_tokens"] == 180


@pytest.mark.anyio
async def test_service_error_without_pii_gives_analysis_unavailable():
    client, _ = _client(exc=RuntimeError("503"))

    verdict = await ContentClassifier(client).classify_text("nice weather today")

    assert verdict.safe is False
    assert verdict.category is Category.OTHER
    assert verdict.severity is Severity.MEDIUM
    assert verdict.suggested_action is Action.DELETE
    assert verdict.rationale == "analysis_unavailable"


@pytest.mark.anyio
async def test_media_fallbacks_are_labelled():
    client = ClassificationClient(api_key=None, model="gpt-4o")
    classifier = ContentClassifier(client)

    image = await classifier.classify_image("https://cdn.example/a.png")
    video = await classifier.classify_video_metadata("https://cdn.example/a.mp4", "a.mp4")

    assert image.rationale == "image_analysis_unavailable"
    assert video.rationale == "video_analysis_unavailable"
    assert not image.safe and not video.safe


@pytest.mark.anyio
async def test_url_is_resolved_before_classification(monkeypatch):
    async def fake_resolve(url, *, timeout):
        assert timeout == 5.0
        return "https://landing.example/final"

    monkeypatch.setattr(classifiers_module, "resolve_redirect", fake_resolve)
    client, completions = _client('{"safe": true, "confidence": 0.9}')

    await ContentClassifier(client).classify_url("https://short.example/x", "guild=1 channel=2")

    request = completions.requests[0]
    assert request["max_tokens"] == 160
    assert request["messages"][1]["content"].endswith("URL: https://landing.example/final")


@pytest.mark.anyio
async def test_outage_end_to_end_bans_pii_solicitation():
    guild = make_guild_with_bot(bot_permissions=perms(ban_members=True, kick_members=True))
    author = guild.add_member(FakeMember(321, name="stranger"))
    audit = FakeChannel(900)
    bot_client = FakeClient({900: audit})
    classifier = ContentClassifier(ClassificationClient(api_key=None, model="gpt-4o"))
    pipeline = MessageModerationPipeline(classifier, ModerationService(bot_client, 900))
    message = FakeMessage("what's your address? send pics", author=author, guild=guild)

    outcome = await pipeline.handle_message(message)

    assert outcome.verdict.category is Category.PERSONAL_INFO_SOLICITATION
    assert outcome.verdict.severity is Severity.HIGH
    assert outcome.verdict.rationale == "fallback_pii_heuristic"
    assert outcome.decision.action is Action.BAN
    assert author.calls == [("ban", "Kojo: personal_info_solicitation")]
    assert message.deleted is True
    assert len(audit.sent) == 1
