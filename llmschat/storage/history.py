from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from ..errors import HistoryError
from ..models import ChatRole, Turn
from .database import Database
from .schema import MessageRecord

logger = logging.getLogger(__name__)


class ChatHistoryStore:
    """Durable per-session message history used as model context."""

    def __init__(self, database: Database) -> None:
        self._db = database

    def add_user_message(self, session_id: str | int, text: str) -> None:
        self._append(session_id, "user", text)

    def add_assistant_message(self, session_id: str | int, text: str) -> None:
        self._append(session_id, "assistant", text)

    def messages(self, session_id: str | int) -> list[Turn]:
        try:
            with self._db.session() as session:
                stmt = (
                    select(MessageRecord)
                    .where(MessageRecord.session_id == str(session_id))
                    .order_by(MessageRecord.id)
                )
                records = list(session.scalars(stmt))
        except SQLAlchemyError as exc:
            raise HistoryError(f"failed to load history: {exc}") from exc
        return [
            Turn(role=record.role, text=record.content, created_at=record.created_at.isoformat())
            for record in records
        ]

    def clear(self, session_id: str | int) -> None:
        try:
            with self._db.session() as session, session.begin():
                session.execute(
                    delete(MessageRecord).where(MessageRecord.session_id == str(session_id))
                )
        except SQLAlchemyError as exc:
            raise HistoryError(f"failed to clear history: {exc}") from exc

    def for_session(self, session_id: str | int) -> "SessionHistory":
        return SessionHistory(self, str(session_id))

    def _append(self, session_id: str | int, role: ChatRole, text: str) -> None:
        try:
            with self._db.session() as session, session.begin():
                session.add(MessageRecord(session_id=str(session_id), role=role, content=text))
        except SQLAlchemyError as exc:
            raise HistoryError(f"failed to save {role} message: {exc}") from exc
        logger.debug("Stored %s message for session %s", role, session_id)


class SessionHistory:
    """History view bound to one conversation."""

    def __init__(self, store: ChatHistoryStore, session_id: str) -> None:
        self._store = store
        self.session_id = session_id

    def add_user_message(self, text: str) -> None:
        self._store.add_user_message(self.session_id, text)

    def add_assistant_message(self, text: str) -> None:
        self._store.add_assistant_message(self.session_id, text)

    def messages(self) -> list[Turn]:
        return self._store.messages(self.session_id)

    def clear(self) -> None:
        self._store.clear(self.session_id)
