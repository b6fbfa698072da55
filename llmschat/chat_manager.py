"""Owns the open conversations and drives each reply on a worker thread.

Every submit appends the user turn right away, then hands the request to a
worker that streams the reply into the session's pending text. When the
stream ends the text is frozen into an assistant turn, or replaced by a
system turn if the request failed. Switching the visible session never
interrupts a worker; deleting a session or shutting down cancels it.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Iterable, Protocol

from sqlalchemy.exc import SQLAlchemyError

from .errors import ChatError
from .models import GREETING_TEXT, Session, Turn
from .providers.base import ChatClient
from .storage.catalog import CatalogStore
from .storage.history import ChatHistoryStore, SessionHistory

logger = logging.getLogger(__name__)

ClientBuilder = Callable[[SessionHistory, "str | None"], ChatClient]


class ChatListener(Protocol):
    def on_turn_appended(self, session_id: int, turn: Turn) -> None: ...

    def on_stream_update(self, session_id: int, partial_text: str) -> None: ...

    def on_sessions_changed(self) -> None: ...


@dataclass
class _SessionState:
    session: Session
    request_lock: threading.Lock = field(default_factory=threading.Lock)
    cancel_events: set[threading.Event] = field(default_factory=set)
    streaming: bool = False
    pending_text: str | None = None


class ChatSessionManager:
    def __init__(
        self,
        history: ChatHistoryStore,
        client_builder: ClientBuilder,
        catalog: CatalogStore | None = None,
        greeting: str = GREETING_TEXT,
        max_workers: int = 4,
        listeners: Iterable[ChatListener] = (),
    ) -> None:
        self._history = history
        self._client_builder = client_builder
        self._catalog = catalog
        self._greeting = greeting
        self._listeners: list[ChatListener] = list(listeners)
        self._states: dict[int, _SessionState] = {}
        self._active_id: int | None = None
        self._next_id = 1
        self._lock = threading.RLock()
        self._futures: set[Future] = set()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="chat-worker")
        self._closed = False
        self.current_model: str | None = None

    # Listeners ----------------------------------------------------------
    def add_listener(self, listener: ChatListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ChatListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # Session registry ---------------------------------------------------
    @property
    def active_session(self) -> Session | None:
        with self._lock:
            state = self._states.get(self._active_id) if self._active_id is not None else None
            return state.session if state else None

    def create_session(self) -> Session:
        with self._lock:
            session = Session(session_id=self._next_id)
            self._next_id += 1
            state = _SessionState(session=session)
            self._states[session.session_id] = state
            self._active_id = session.session_id
            error = self._persist_chat(session)
        self._append(state, Turn(role="assistant", text=self._greeting))
        if error is not None:
            self._append(state, Turn(role="system", text=f"Error: {error}"))
        self._notify_sessions_changed()
        logger.info("Created chat session %d", session.session_id)
        return session

    def select_session(self, session_id: int) -> Session | None:
        with self._lock:
            state = self._states.get(session_id)
            if state is None:
                return None
            self._active_id = session_id
            return state.session

    def get_session(self, session_id: int) -> Session | None:
        with self._lock:
            state = self._states.get(session_id)
            return state.session if state else None

    def list_sessions(self) -> list[Session]:
        with self._lock:
            return [self._states[sid].session for sid in sorted(self._states)]

    def transcript(self, session_id: int) -> list[Turn]:
        with self._lock:
            state = self._states.get(session_id)
            return state.session.snapshot() if state else []

    def is_streaming(self, session_id: int) -> bool:
        with self._lock:
            state = self._states.get(session_id)
            return bool(state and state.streaming)

    def pending_text(self, session_id: int) -> str | None:
        with self._lock:
            state = self._states.get(session_id)
            return state.pending_text if state else None

    def rename_session(self, session_id: int, title: str) -> bool:
        title = title.strip()
        if not title:
            return False
        with self._lock:
            state = self._states.get(session_id)
            if state is None:
                return False
            previous = state.session.title
            state.session.title = title
            error = self._persist_chat(state.session)
            if error is not None:
                state.session.title = previous
        if error is not None:
            self._append(state, Turn(role="system", text=f"Error: {error}"))
            return False
        self._notify_sessions_changed()
        return True

    def delete_session(self, session_id: int) -> bool:
        """Remove a session and its stored history, cancelling any reply.

        When the store cannot delete it, the session stays open, gets a
        system error turn and False is returned.
        """

        with self._lock:
            state = self._states.get(session_id)
            if state is None:
                return False
        try:
            self._purge_history(session_id)
        except (ChatError, SQLAlchemyError) as exc:
            logger.exception("Failed to delete stored history for session %d", session_id)
            self._append(state, Turn(role="system", text=f"Error: failed to delete chat: {exc}"))
            return False

        with self._lock:
            self._states.pop(session_id, None)
            for event in state.cancel_events:
                event.set()
            if self._active_id == session_id:
                self._active_id = max(self._states) if self._states else None
        self._notify_sessions_changed()
        logger.info("Deleted chat session %d", session_id)
        return True

    def restore_sessions(self) -> list[Session]:
        """Rebuild sessions saved by a previous run."""

        if self._catalog is None:
            return []
        restored: list[Session] = []
        for record in self._catalog.chats():
            session = Session(session_id=record.id, title=record.title)
            session.append_turn(Turn(role="assistant", text=self._greeting))
            for turn in self._history.messages(record.id):
                session.append_turn(turn)
            restored.append(session)

        # 削除済みチャットの ID も再利用しない
        highest = self._catalog.highest_chat_id()
        with self._lock:
            self._next_id = max(self._next_id, highest + 1)
            for session in restored:
                self._states[session.session_id] = _SessionState(session=session)
            if restored and self._active_id is None:
                self._active_id = restored[-1].session_id
        if restored:
            logger.info("Restored %d chat session(s)", len(restored))
            self._notify_sessions_changed()
        return restored

    # Requests -----------------------------------------------------------
    def submit(self, text: str, session_id: int | None = None) -> bool:
        """Send user text to a session (the active one by default).

        Returns False when nothing was sent: empty input, unknown session,
        a reply still streaming in that session, or a closed manager.
        """

        prompt = (text or "").strip()
        if not prompt:
            return False

        with self._lock:
            if self._closed:
                return False
            target = session_id if session_id is not None else self._active_id
            state = self._states.get(target) if target is not None else None
            if state is None or state.streaming:
                return False
            state.streaming = True
            cancel = threading.Event()
            state.cancel_events.add(cancel)
            model = self.current_model

        self._append(state, Turn(role="user", text=prompt))

        future = self._executor.submit(self._respond, state, prompt, model, cancel)
        with self._lock:
            self._futures.add(future)
        future.add_done_callback(self._discard_future)
        return True

    def _respond(
        self,
        state: _SessionState,
        prompt: str,
        model: str | None,
        cancel: threading.Event,
    ) -> None:
        session_id = state.session.session_id
        with state.request_lock:
            try:
                if cancel.is_set():
                    logger.info("Dropping cancelled request for session %d before it started", session_id)
                    return
                self._stream_reply(state, prompt, model, cancel)
            except ChatError as exc:
                logger.warning("Request for session %d failed: %s", session_id, exc)
                self._append_unless_cancelled(state, cancel, Turn(role="system", text=f"Error: {exc}"))
            except Exception as exc:  # pragma: no cover - runtime safety
                # 応答処理中の想定外の例外でもアプリは終了させず、エラーとして会話に残す
                logger.exception("Unexpected failure while answering session %d", session_id)
                self._append_unless_cancelled(
                    state, cancel, Turn(role="system", text=f"Error: unexpected failure: {exc}")
                )
            finally:
                with self._lock:
                    state.pending_text = None
                    state.streaming = False
                    state.cancel_events.discard(cancel)
                    deleted = session_id not in self._states or self._states[session_id] is not state
                if cancel.is_set() and deleted:
                    self._discard_orphaned_history(session_id)

    def _stream_reply(
        self,
        state: _SessionState,
        prompt: str,
        model: str | None,
        cancel: threading.Event,
    ) -> None:
        session_id = state.session.session_id
        client = self._client_builder(self._history.for_session(session_id), model)
        logger.info("Streaming reply for session %d with %s", session_id, client.model_name)

        parts: list[str] = []
        state.pending_text = ""
        with client.stream_complete(prompt, cancel_event=cancel) as relay:
            for chunk in relay:
                parts.append(chunk)
                state.pending_text += chunk
                self._notify_stream(session_id, state.pending_text)
            error = relay.error

        if error is not None and parts and parts[-1] == error:
            # 末尾のチャンクはエラー文なので応答本文から外す
            parts.pop()
        reply = "".join(parts)
        if reply or error is None:
            self._append_unless_cancelled(state, cancel, Turn(role="assistant", text=reply))
        if error is not None:
            self._append_unless_cancelled(state, cancel, Turn(role="system", text=f"Error: {error}"))
        logger.info("Finished reply for session %d (%d chars)", session_id, len(reply))

    # Shutdown -----------------------------------------------------------
    def wait_idle(self, timeout: float | None = None) -> bool:
        with self._lock:
            pending = list(self._futures)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, timeout: float | None = 5.0) -> None:
        with self._lock:
            self._closed = True
            for state in self._states.values():
                for event in state.cancel_events:
                    event.set()
        if not self.wait_idle(timeout):
            logger.warning("Chat workers still running after %.1fs; abandoning them", timeout or 0)
        self._executor.shutdown(wait=False, cancel_futures=True)
        logger.info("Chat session manager shutdown complete")

    # Internal helpers ---------------------------------------------------
    def _append(self, state: _SessionState, turn: Turn) -> None:
        error = None
        with self._lock:
            title_changed = state.session.append_turn(turn)
            if title_changed:
                error = self._persist_chat(state.session)
        self._notify_turn(state.session.session_id, turn)
        if title_changed:
            self._notify_sessions_changed()
        if error is not None:
            self._append(state, Turn(role="system", text=f"Error: {error}"))

    def _append_unless_cancelled(
        self,
        state: _SessionState,
        cancel: threading.Event,
        turn: Turn,
    ) -> None:
        if cancel.is_set():
            return
        self._append(state, turn)

    def _persist_chat(self, session: Session) -> str | None:
        """Save the chat title; returns the error text when the store fails."""

        if self._catalog is None:
            return None
        try:
            self._catalog.save_chat(session.session_id, session.title)
        except SQLAlchemyError as exc:
            logger.exception("Failed to save chat %d", session.session_id)
            return f"failed to save chat: {exc}"
        return None

    def _purge_history(self, session_id: int) -> None:
        if self._catalog is not None:
            self._catalog.delete_chat(session_id)
        else:
            self._history.clear(session_id)

    def _discard_orphaned_history(self, session_id: int) -> None:
        # 削除と並行して書き込まれた行が残らないよう、停止後にもう一度消す
        try:
            self._purge_history(session_id)
        except (ChatError, SQLAlchemyError):
            logger.exception("Failed to discard history of deleted session %d", session_id)

    def _discard_future(self, future: Future) -> None:
        with self._lock:
            self._futures.discard(future)

    def _notify_turn(self, session_id: int, turn: Turn) -> None:
        for listener in list(self._listeners):
            try:
                listener.on_turn_appended(session_id, turn)
            except Exception:
                logger.exception("Listener failed on turn for session %d", session_id)

    def _notify_stream(self, session_id: int, partial_text: str) -> None:
        for listener in list(self._listeners):
            try:
                listener.on_stream_update(session_id, partial_text)
            except Exception:
                logger.exception("Listener failed on stream update for session %d", session_id)

    def _notify_sessions_changed(self) -> None:
        for listener in list(self._listeners):
            try:
                listener.on_sessions_changed()
            except Exception:
                logger.exception("Listener failed on sessions change")
