"""Pytest configuration and fixtures."""

from __future__ import annotations

import threading
from typing import Iterator

import pytest

from llmschat.chat_manager import ChatSessionManager
from llmschat.models import Turn
from llmschat.providers.base import ChatClient, ClientOptions, ContextMessage
from llmschat.storage import CatalogStore, ChatHistoryStore, Database

WAIT_TIMEOUT = 5.0


class FakeChatClient(ChatClient):
    """Scripted client: yields ``chunks`` then optionally raises ``error``.

    When ``gate`` is given the stream pauses after its first chunk until the
    gate is set, which lets tests observe a reply while it is in flight.
    """

    label = "fake"

    def __init__(
        self,
        options: ClientOptions,
        history,
        chunks: tuple[str, ...] = ("Hello", " world"),
        error: Exception | None = None,
        gate: threading.Event | None = None,
    ) -> None:
        super().__init__(options, history)
        self.chunks = chunks
        self.error = error
        self.gate = gate
        self.requests: list[list[ContextMessage]] = []

    def _request(self, messages: list[ContextMessage]) -> str:
        self.requests.append(messages)
        if self.error is not None:
            raise self.error
        return "".join(self.chunks)

    def _stream(self, messages: list[ContextMessage]) -> Iterator[str]:
        self.requests.append(messages)
        for index, chunk in enumerate(self.chunks):
            if index > 0 and self.gate is not None:
                self.gate.wait(WAIT_TIMEOUT)
            yield chunk
        if self.error is not None:
            raise self.error


def fake_options(model_name: str = "fake-model", **overrides) -> ClientOptions:
    overrides.setdefault("stream_poll_interval", 0.01)
    return ClientOptions(
        provider_name="Fake",
        api_key="test-key",
        model_name=model_name,
        **overrides,
    )


class FakeClientBuilder:
    """Stands in for the settings-driven builder used by the app."""

    def __init__(self) -> None:
        self.default: dict = {}
        self.scripts: dict[str, dict] = {}
        self.fail_with: Exception | None = None
        self.clients: list[FakeChatClient] = []
        self.models: list[str | None] = []

    def __call__(self, history, model_name: str | None) -> FakeChatClient:
        self.models.append(model_name)
        if self.fail_with is not None:
            raise self.fail_with
        script = self.scripts.get(history.session_id, self.default)
        client = FakeChatClient(fake_options(model_name or "fake-model"), history, **script)
        self.clients.append(client)
        return client


class RecordingListener:
    def __init__(self) -> None:
        self.turns: list[tuple[int, Turn]] = []
        self.stream_updates: list[tuple[int, str]] = []
        self.sessions_changed = 0
        self._condition = threading.Condition()

    def on_turn_appended(self, session_id: int, turn: Turn) -> None:
        with self._condition:
            self.turns.append((session_id, turn))
            self._condition.notify_all()

    def on_stream_update(self, session_id: int, partial_text: str) -> None:
        with self._condition:
            self.stream_updates.append((session_id, partial_text))
            self._condition.notify_all()

    def on_sessions_changed(self) -> None:
        with self._condition:
            self.sessions_changed += 1
            self._condition.notify_all()

    def wait_for_stream(self, session_id: int, timeout: float = WAIT_TIMEOUT) -> bool:
        with self._condition:
            return self._condition.wait_for(
                lambda: any(sid == session_id for sid, _ in self.stream_updates),
                timeout,
            )


@pytest.fixture
def database(tmp_path) -> Iterator[Database]:
    db = Database(tmp_path / "data" / "chat.db")
    yield db
    db.close()


@pytest.fixture
def catalog(database) -> CatalogStore:
    store = CatalogStore(database)
    store.init()
    return store


@pytest.fixture
def history_store(catalog, database) -> ChatHistoryStore:
    return ChatHistoryStore(database)


@pytest.fixture
def builder() -> FakeClientBuilder:
    return FakeClientBuilder()


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
def manager(history_store, catalog, builder, listener) -> Iterator[ChatSessionManager]:
    mgr = ChatSessionManager(
        history_store,
        builder,
        catalog=catalog,
        max_workers=4,
        listeners=[listener],
    )
    yield mgr
    mgr.shutdown(timeout=WAIT_TIMEOUT)
