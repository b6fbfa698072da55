from __future__ import annotations

from dataclasses import replace
from typing import Iterator
from urllib.parse import urlparse

from openai import OpenAI

from .base import ChatClient, ClientOptions, ContextMessage
from .registry import register_provider
from ..storage.history import SessionHistory

DEEPSEEK_BASE_URL = "https://api.deepseek.com"


def api_base(base_url: str | None) -> str | None:
    """Catalog URLs store the bare host; the OpenAI SDK expects the /v1 root."""

    if not base_url:
        return None
    url = base_url.rstrip("/")
    if urlparse(url).path in ("", "/"):
        url = f"{url}/v1"
    return url


class OpenAIChatClient(ChatClient):
    label = "openai"

    def __init__(self, options: ClientOptions, history: SessionHistory) -> None:
        super().__init__(options, history)
        self._client = OpenAI(
            api_key=options.api_key,
            base_url=api_base(options.base_url),
            timeout=options.timeout,
        )

    def _request(self, messages: list[ContextMessage]) -> str:
        response = self._client.chat.completions.create(
            model=self.model_name,
            messages=messages,
            temperature=self.options.temperature,
            max_tokens=self.options.max_tokens,
        )
        return response.choices[0].message.content or ""

    def _stream(self, messages: list[ContextMessage]) -> Iterator[str]:
        completion = self._client.chat.completions.create(
            model=self.model_name,
            messages=messages,
            temperature=self.options.temperature,
            max_tokens=self.options.max_tokens,
            stream=True,
        )
        try:
            for chunk in completion:
                if not chunk.choices:
                    continue
                content = getattr(chunk.choices[0].delta, "content", None)
                if content:
                    yield content
        finally:
            close = getattr(completion, "close", None)
            if close is not None:
                close()


class DeepseekChatClient(OpenAIChatClient):
    label = "deepseek"


@register_provider("OpenAI")
def create_openai_client(options: ClientOptions, history: SessionHistory) -> ChatClient:
    return OpenAIChatClient(options, history)


@register_provider("Deepseek")
def create_deepseek_client(options: ClientOptions, history: SessionHistory) -> ChatClient:
    if not options.base_url:
        options = replace(options, base_url=DEEPSEEK_BASE_URL)
    return DeepseekChatClient(options, history)
