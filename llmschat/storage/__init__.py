"""Local SQLite persistence: catalog, settings profile and chat history."""

from .catalog import DEFAULT_CATALOG, CatalogStore
from .database import Database
from .history import ChatHistoryStore, SessionHistory

__all__ = [
    "CatalogStore",
    "ChatHistoryStore",
    "DEFAULT_CATALOG",
    "Database",
    "SessionHistory",
]
