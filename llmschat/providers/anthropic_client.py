from __future__ import annotations

from typing import Iterator

import anthropic

from .base import ChatClient, ClientOptions, ContextMessage
from .registry import register_provider
from ..storage.history import SessionHistory


class AnthropicChatClient(ChatClient):
    label = "anthropic"

    def __init__(self, options: ClientOptions, history: SessionHistory) -> None:
        super().__init__(options, history)
        kwargs = {"api_key": options.api_key, "timeout": options.timeout}
        if options.base_url:
            kwargs["base_url"] = options.base_url
        self._client = anthropic.Anthropic(**kwargs)

    def _request(self, messages: list[ContextMessage]) -> str:
        response = self._client.messages.create(
            model=self.model_name,
            max_tokens=self.options.max_tokens,
            temperature=self.options.temperature,
            messages=messages,
        )
        return "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )

    def _stream(self, messages: list[ContextMessage]) -> Iterator[str]:
        with self._client.messages.stream(
            model=self.model_name,
            max_tokens=self.options.max_tokens,
            temperature=self.options.temperature,
            messages=messages,
        ) as stream:
            for text in stream.text_stream:
                yield text


@register_provider("Anthropic")
def create_anthropic_client(options: ClientOptions, history: SessionHistory) -> ChatClient:
    return AnthropicChatClient(options, history)
