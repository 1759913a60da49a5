from __future__ import annotations

from types import SimpleNamespace

import pytest

from fakes import FakeGuild, FakeMember, FakeMessage
from modules.moderation.dispatch import MessageModerationPipeline, message_context
from modules.moderation.verdict import normalize_verdict

SAFE = normalize_verdict({"safe": True, "confidence": 0.95})
UNSAFE = normalize_verdict({"safe": False, "category": "scams_malware", "confidence": 0.9})


class FakeClassifier:
    def __init__(self, *, text=SAFE, url=SAFE, image=SAFE, video=SAFE):
        self.results = {"text": text, "url": url, "image": image, "video": video}
        self.calls: list[tuple[str, tuple]] = []

    async def classify_text(self, text, context=""):
        self.calls.append(("text", (text, context)))
        return self.results["text"]

    async def classify_url(self, url, context=""):
        self.calls.append(("url", (url, context)))
        return self.results["url"]

    async def classify_image(self, url):
        self.calls.append(("image", (url,)))
        return self.results["image"]

    async def classify_video(self, url, filename=None):
        self.calls.append(("video", (url, filename)))
        return self.results["video"]

    def kinds(self):
        return [kind for kind, _ in self.calls]


class FakeService:
    def __init__(self):
        self.applied = []

    async def apply(self, target, verdict):
        self.applied.append((target, verdict))
        return SimpleNamespace(target=target, verdict=verdict)


def _attachment(url, *, content_type=None, filename=None):
    return SimpleNamespace(url=url, content_type=content_type, filename=filename)


def _message(content="", attachments=None, *, bot=False):
    guild = FakeGuild(10)
    author = guild.add_member(FakeMember(5, bot=bot))
    return FakeMessage(content, author=author, guild=guild, attachments=attachments)


@pytest.mark.anyio
async def test_flagged_text_stops_before_url_and_attachments():
    classifier = FakeClassifier(text=UNSAFE)
    service = FakeService()
    pipeline = MessageModerationPipeline(classifier, service)
    message = _message(
        "click https://evil-prizes.com/win now",
        [_attachment("https://cdn.example/a.png", content_type="image/png")],
    )

    outcome = await pipeline.handle_message(message)

    assert outcome is not None
    assert classifier.kinds() == ["text"]
    assert len(service.applied) == 1
    assert classifier.calls[0][1][1] == "guild=10 channel=77"


@pytest.mark.anyio
async def test_flagged_url_stops_before_attachments():
    classifier = FakeClassifier(url=UNSAFE)
    service = FakeService()
    pipeline = MessageModerationPipeline(classifier, service)
    message = _message(
        "see https://first-site.com/x and https://second-site.com/y",
        [_attachment("https://cdn.example/a.png", content_type="image/png")],
    )

    await pipeline.handle_message(message)

    assert classifier.kinds() == ["text", "url"]
    assert classifier.calls[1][1][0] == "https://first-site.com/x"
    assert len(service.applied) == 1


@pytest.mark.anyio
async def test_attachments_in_order_until_first_flag():
    classifier = FakeClassifier(video=UNSAFE)
    service = FakeService()
    pipeline = MessageModerationPipeline(classifier, service)
    message = _message(
        "",
        [
            _attachment("https://cdn.example/notes.txt", filename="notes.txt"),
            _attachment("https://cdn.example/a", content_type="image/jpeg"),
            _attachment("https://cdn.example/clip.mp4?ex=1", filename="blob"),
            _attachment("https://cdn.example/b.png", filename="b.png"),
        ],
    )

    await pipeline.handle_message(message)

    assert classifier.kinds() == ["image", "video"]
    assert classifier.calls[1][1] == ("https://cdn.example/clip.mp4?ex=1", "blob")
    assert len(service.applied) == 1


@pytest.mark.anyio
async def test_clean_message_runs_every_check_and_acts_on_nothing():
    classifier = FakeClassifier()
    service = FakeService()
    pipeline = MessageModerationPipeline(classifier, service)
    message = _message(
        "hello https://ok-site.com",
        [_attachment("https://cdn.example/a.gif", filename="a.gif")],
    )

    assert await pipeline.handle_message(message) is None
    assert classifier.kinds() == ["text", "url", "image"]
    assert service.applied == []


@pytest.mark.anyio
async def test_bot_authors_are_ignored():
    classifier = FakeClassifier(text=UNSAFE)
    service = FakeService()
    pipeline = MessageModerationPipeline(classifier, service)

    assert await pipeline.handle_message(_message("anything", bot=True)) is None
    assert classifier.calls == []


def test_message_context_for_direct_messages():
    message = SimpleNamespace(guild=None, channel=SimpleNamespace(id=3))
    assert message_context(message) == "guild=DM channel=3"
