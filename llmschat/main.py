from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler

from PySide6.QtWidgets import QApplication

from .chat_manager import ChatSessionManager
from .config import AppConfig
from .providers import build_client_from_settings
from .storage import CatalogStore, ChatHistoryStore, Database
from .ui import MainWindow
from .ui.theme import apply_theme

LOG_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"
LOG_FILENAME = "llmschat.log"

logger = logging.getLogger(__name__)


def configure_logging(config: AppConfig) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    file_handler = RotatingFileHandler(
        config.paths.log_dir / LOG_FILENAME,
        maxBytes=1_000_000,
        backupCount=3,
        encoding="utf-8",
    )
    handlers.append(file_handler)
    logging.basicConfig(level=config.log_level, format=LOG_FORMAT, handlers=handlers, force=True)


def build_manager(config: AppConfig, catalog: CatalogStore, history: ChatHistoryStore) -> ChatSessionManager:
    def client_builder(session_history, model_name):
        # 会話ごとに最新の設定を読み直してクライアントを作る
        return build_client_from_settings(
            catalog,
            session_history,
            model_name,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=config.request_timeout,
            stream_queue_size=config.stream_queue_size,
            stream_poll_interval=config.stream_poll_interval,
        )

    return ChatSessionManager(
        history,
        client_builder,
        catalog=catalog,
        greeting=config.greeting,
        max_workers=config.max_workers,
    )


def main() -> None:
    # Qt アプリのエントリポイント。設定→DB→セッション管理→メインウィンドウの順に組み立てる。
    config = AppConfig()
    config.paths.ensure()
    configure_logging(config)
    logger.info("Starting llmschat (database: %s)", config.database_path)

    database = Database(config.database_path)
    catalog = CatalogStore(database)
    catalog.init()
    history = ChatHistoryStore(database)

    manager = build_manager(config, catalog, history)
    manager.restore_sessions()
    if not manager.list_sessions():
        manager.create_session()

    app = QApplication(sys.argv)
    apply_theme(app)
    window = MainWindow(config, manager, catalog)
    window.show()
    try:
        exit_code = app.exec()
    finally:
        manager.shutdown()
        database.close()
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
