"""Common contract for provider clients.

Every client exposes ``complete`` (blocking) and ``stream_complete``
(returns a :class:`~llmschat.relay.StreamRelay`). Both record the prompt in
the session history before the request and the reply after it succeeds, so
each request carries the whole conversation as context.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator

from ..errors import ChatError, ProviderError
from ..relay import DEFAULT_POLL_INTERVAL, DEFAULT_QUEUE_SIZE, StreamRelay
from ..storage.history import SessionHistory

logger = logging.getLogger(__name__)

ContextMessage = dict[str, str]


@dataclass(frozen=True)
class ClientOptions:
    provider_name: str
    api_key: str
    model_name: str
    base_url: str | None = None
    temperature: float = 0.7
    max_tokens: int = 1024
    timeout: float = 60.0
    stream_queue_size: int = DEFAULT_QUEUE_SIZE
    stream_poll_interval: float = DEFAULT_POLL_INTERVAL


class ChatClient(ABC):
    # エラーメッセージの接頭辞に使う名前（例: "openai chat error: ..."）
    label = "llm"

    def __init__(self, options: ClientOptions, history: SessionHistory) -> None:
        self.options = options
        self.history = history

    @property
    def model_name(self) -> str:
        return self.options.model_name

    def complete(self, prompt: str) -> str:
        self.history.add_user_message(prompt)
        messages = self._context()
        try:
            text = self._request(messages)
        except ChatError:
            raise
        except Exception as exc:
            raise ProviderError(f"{self.label} chat error: {exc}") from exc
        self.history.add_assistant_message(text)
        return text

    def stream_complete(
        self,
        prompt: str,
        cancel_event: threading.Event | None = None,
    ) -> StreamRelay:
        def produce(emit, cancel: threading.Event) -> None:
            if cancel.is_set():
                logger.info("Stream for session %s cancelled before sending", self.history.session_id)
                return
            self.history.add_user_message(prompt)
            messages = self._context()
            parts: list[str] = []
            stream: Iterator[str] | None = None
            try:
                stream = self._stream(messages)
                for chunk in stream:
                    if not chunk:
                        continue
                    parts.append(chunk)
                    if not emit(chunk):
                        break
            except ChatError:
                raise
            except Exception as exc:
                raise ProviderError(f"{self.label} chat error: {exc}") from exc
            finally:
                close = getattr(stream, "close", None)
                if close is not None:
                    close()

            if cancel.is_set():
                logger.info("Stream for session %s cancelled", self.history.session_id)
                return
            self.history.add_assistant_message("".join(parts))

        return StreamRelay.run(
            produce,
            maxsize=self.options.stream_queue_size,
            poll_interval=self.options.stream_poll_interval,
            cancel_event=cancel_event,
            name=f"{self.label}-stream-{self.history.session_id}",
        )

    def _context(self) -> list[ContextMessage]:
        return [
            {"role": turn.role, "content": turn.text}
            for turn in self.history.messages()
            if turn.role in ("user", "assistant")
        ]

    @abstractmethod
    def _request(self, messages: list[ContextMessage]) -> str:
        """Send the conversation and return the full reply."""

    @abstractmethod
    def _stream(self, messages: list[ContextMessage]) -> Iterator[str]:
        """Send the conversation and yield reply text as it arrives."""
