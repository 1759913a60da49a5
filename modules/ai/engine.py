from __future__ import annotations

import logging
from typing import Any, Optional, Union

from openai import AsyncOpenAI

from .errors import ClassificationUnavailable

log = logging.getLogger(__name__)

UserContent = Union[str, list[dict[str, Any]]]


def image_content(prompt: str, image_url: str) -> list[dict[str, Any]]:
    """Build a multimodal user message carrying one image (URL or data URL)."""
    return [
        {"type": "text", "text": prompt},
        {"type": "image_url", "image_url": {"url": image_url}},
    ]


class ClassificationClient:
    """Thin wrapper around the chat completions API used for every verdict.

    The raw text is returned untouched; callers own parsing through the
    verdict normalizer because the service is not trusted to follow the
    schema.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str],
        model: str,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self.model = model
        if client is not None:
            self._client: Optional[AsyncOpenAI] = client
        elif api_key:
            self._client = AsyncOpenAI(api_key=api_key)
        else:
            self._client = None

    @property
    def available(self) -> bool:
        return self._client is not None

    async def complete(
        self,
        *,
        system_prompt: str,
        user_content: UserContent,
        max_tokens: int = 180,
    ) -> str:
        if self._client is None:
            raise ClassificationUnavailable("no classifier API key configured")

        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
        }
        # gpt-5 family rejects temperature/max_tokens; keep reasoning minimal.
        if self.model.startswith("gpt-5"):
            kwargs["max_completion_tokens"] = max_tokens
            kwargs["reasoning_effort"] = "minimal"
        else:
            kwargs["temperature"] = 0.0
            kwargs["max_tokens"] = max_tokens

        response = await self._client.chat.completions.create(**kwargs)
        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content:
            raise ClassificationUnavailable("classifier returned no content")
        log.debug("Classifier %s responded with %d chars", self.model, len(content))
        return content

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
