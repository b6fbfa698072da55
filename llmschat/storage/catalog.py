"""Provider/model catalog, the single settings profile, and saved chat titles."""

from __future__ import annotations

import logging

from sqlalchemy import delete, func, select

from .database import Database
from .schema import ChatRecord, MessageRecord, Model, Provider, Settings

logger = logging.getLogger(__name__)

DEFAULT_CATALOG: dict[str, tuple[str | None, list[str]]] = {
    "OpenAI": (
        "https://api.openai.com",
        ["gpt-4", "gpt-4-turbo", "gpt-4-32k", "gpt-3.5-turbo", "gpt-3.5-turbo-16k"],
    ),
    "Anthropic": (
        "https://api.anthropic.com",
        ["claude-2.1", "claude-2.0", "claude-instant-1.2"],
    ),
    "Google": (
        "https://generativelanguage.googleapis.com",
        ["palm-2", "gemini-pro"],
    ),
    "Meta": (None, ["llama-2-70b", "llama-2-13b"]),
    "Mistral": (None, ["mistral-7b", "mixtral-8x7b"]),
    "Deepseek": ("https://api.deepseek.com", ["deepseek-chat", "deepseek-reasoner"]),
}


class CatalogStore:
    def __init__(self, database: Database) -> None:
        self._db = database

    def init(self, catalog: dict[str, tuple[str | None, list[str]]] | None = None) -> None:
        self._db.create_tables()
        self.seed(catalog or DEFAULT_CATALOG)

    def seed(self, catalog: dict[str, tuple[str | None, list[str]]]) -> None:
        """Insert missing providers and models; existing rows are left untouched."""

        with self._db.session() as session, session.begin():
            for provider_name, (base_url, model_names) in catalog.items():
                provider = session.scalar(select(Provider).where(Provider.name == provider_name))
                if provider is None:
                    provider = Provider(name=provider_name, base_url=base_url)
                    session.add(provider)
                    session.flush()
                    logger.info("Created provider %s with ID %d", provider_name, provider.id)

                existing = set(
                    session.scalars(select(Model.name).where(Model.provider_id == provider.id))
                )
                for model_name in model_names:
                    if model_name not in existing:
                        session.add(Model(name=model_name, provider_id=provider.id))
        logger.info("Catalog seeded with %d providers", len(catalog))

    # Providers / models -------------------------------------------------
    def providers(self) -> list[Provider]:
        with self._db.session() as session:
            return list(session.scalars(select(Provider).order_by(Provider.name)))

    def provider_by_name(self, name: str) -> Provider | None:
        with self._db.session() as session:
            return session.scalar(select(Provider).where(Provider.name == name))

    def provider_by_id(self, provider_id: int) -> Provider | None:
        with self._db.session() as session:
            return session.get(Provider, provider_id)

    def models_for_provider(self, provider_id: int) -> list[Model]:
        with self._db.session() as session:
            stmt = select(Model).where(Model.provider_id == provider_id).order_by(Model.name)
            return list(session.scalars(stmt))

    def model_by_id(self, model_id: int) -> Model | None:
        with self._db.session() as session:
            return session.get(Model, model_id)

    # Settings -----------------------------------------------------------
    def save_settings(
        self,
        display_name: str,
        provider_id: int,
        model_id: int,
        api_key: str,
    ) -> None:
        # 設定は常に 1 行だけ保持する（全削除してから挿入）
        with self._db.session() as session, session.begin():
            session.execute(delete(Settings))
            session.add(
                Settings(
                    display_name=display_name,
                    provider_id=provider_id,
                    model_id=model_id,
                    api_key=api_key,
                )
            )
        logger.info("Settings saved for provider_id=%s model_id=%s", provider_id, model_id)

    def get_settings(self) -> Settings | None:
        with self._db.session() as session:
            return session.scalar(select(Settings).order_by(Settings.id).limit(1))

    def settings_count(self) -> int:
        with self._db.session() as session:
            return len(session.scalars(select(Settings.id)).all())

    # Chats --------------------------------------------------------------
    def save_chat(self, chat_id: int, title: str) -> None:
        with self._db.session() as session, session.begin():
            record = session.get(ChatRecord, chat_id)
            if record is None:
                session.add(ChatRecord(id=chat_id, title=title))
            else:
                record.title = title

    def delete_chat(self, chat_id: int) -> None:
        with self._db.session() as session, session.begin():
            session.execute(delete(ChatRecord).where(ChatRecord.id == chat_id))
            session.execute(delete(MessageRecord).where(MessageRecord.session_id == str(chat_id)))

    def chats(self) -> list[ChatRecord]:
        with self._db.session() as session:
            return list(session.scalars(select(ChatRecord).order_by(ChatRecord.id)))

    def highest_chat_id(self) -> int:
        """Largest id used by a saved chat or by stored messages (0 when empty)."""

        with self._db.session() as session:
            chat_max = session.scalar(select(func.max(ChatRecord.id))) or 0
            message_ids = session.scalars(select(MessageRecord.session_id).distinct())
            numeric = [int(value) for value in message_ids if value.isdigit()]
        return max([chat_max, *numeric])
