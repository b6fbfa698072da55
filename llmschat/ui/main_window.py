from __future__ import annotations

import logging

from PySide6.QtCore import Qt
from PySide6.QtGui import QCloseEvent
from PySide6.QtWidgets import (
    QComboBox,
    QMainWindow,
    QMessageBox,
    QSplitter,
    QVBoxLayout,
    QWidget,
)

from ..chat_manager import ChatSessionManager
from ..config import AppConfig
from ..models import Turn
from ..storage.catalog import CatalogStore
from .conversation_widget import ConversationWidget
from .history_panel import HistoryPanel
from .settings_dialog import SettingsDialog
from .workers import ChatSignalBridge

logger = logging.getLogger(__name__)


class MainWindow(QMainWindow):
    def __init__(
        self,
        config: AppConfig,
        manager: ChatSessionManager,
        catalog: CatalogStore,
    ) -> None:
        super().__init__()
        self._config = config
        self._manager = manager
        self._catalog = catalog
        self._displayed_id: int | None = None

        self.setWindowTitle(config.window_title)
        self.resize(900, 700)

        self._bridge = ChatSignalBridge(self)
        self._bridge.turn_appended.connect(self._on_turn_appended)
        self._bridge.stream_updated.connect(self._on_stream_updated)
        self._bridge.sessions_changed.connect(self._refresh_history)
        manager.add_listener(self._bridge)

        self._history_panel = HistoryPanel(self)
        self._history_panel.session_selected.connect(self._show_session)
        self._history_panel.new_session_requested.connect(self._create_session)
        self._history_panel.rename_requested.connect(self._manager.rename_session)
        self._history_panel.delete_requested.connect(self._delete_session)
        self._history_panel.settings_requested.connect(self._open_settings)

        self._model_combo = QComboBox(self)
        self._model_combo.currentTextChanged.connect(self._on_model_changed)

        self._conversation = ConversationWidget(self)
        self._conversation.message_submitted.connect(self._on_message_submitted)

        right = QWidget(self)
        right_layout = QVBoxLayout()
        right_layout.addWidget(self._model_combo)
        right_layout.addWidget(self._conversation, stretch=1)
        right_layout.setContentsMargins(0, 0, 0, 0)
        right.setLayout(right_layout)

        splitter = QSplitter(Qt.Horizontal, self)
        splitter.addWidget(self._history_panel)
        splitter.addWidget(right)
        splitter.setStretchFactor(0, 1)
        splitter.setStretchFactor(1, 4)
        splitter.setSizes([180, 720])
        self.setCentralWidget(splitter)

        self._load_models()
        if not self._manager.list_sessions():
            self._manager.create_session()
        active = self._manager.active_session
        self._refresh_history()
        if active is not None:
            self._show_session(active.session_id)

    # Sessions -----------------------------------------------------------
    def _create_session(self) -> None:
        session = self._manager.create_session()
        self._show_session(session.session_id)

    def _show_session(self, session_id: int) -> None:
        session = self._manager.select_session(session_id)
        if session is None:
            return
        self._displayed_id = session_id
        # 裏で生成中の会話に戻ったときは途中までの応答も表示する
        self._conversation.display_session(
            self._manager.transcript(session_id),
            self._manager.pending_text(session_id),
        )
        self._conversation.set_busy(self._manager.is_streaming(session_id))
        self._refresh_history()

    def _delete_session(self, session_id: int) -> None:
        session = self._manager.get_session(session_id)
        if session is None:
            return
        answer = QMessageBox.question(self, "Delete Chat", f"Delete '{session.title}'?")
        if answer != QMessageBox.Yes:
            return
        self._manager.delete_session(session_id)
        if not self._manager.list_sessions():
            self._manager.create_session()
        active = self._manager.active_session
        if active is not None:
            self._show_session(active.session_id)

    def _refresh_history(self) -> None:
        self._history_panel.set_sessions(self._manager.list_sessions(), self._displayed_id)

    # Messages -----------------------------------------------------------
    def _on_message_submitted(self, text: str) -> None:
        if self._displayed_id is None:
            return
        if not self._manager.submit(text, self._displayed_id):
            return
        self._history_panel.set_streaming(self._displayed_id, True)
        self._conversation.update_pending("")
        self._conversation.set_busy(True, "Waiting for response...")

    def _on_turn_appended(self, session_id: int, turn: Turn) -> None:
        if turn.role != "user":
            self._history_panel.set_streaming(session_id, False)
        if session_id != self._displayed_id:
            return
        self._conversation.append_turn(turn)
        if turn.role != "user":
            self._conversation.set_busy(False)

    def _on_stream_updated(self, session_id: int, partial_text: str) -> None:
        if session_id == self._displayed_id:
            self._conversation.update_pending(partial_text)

    # Settings / models --------------------------------------------------
    def _open_settings(self) -> None:
        dialog = SettingsDialog(self._catalog, self)
        if dialog.exec():
            self._load_models()

    def _load_models(self) -> None:
        self._model_combo.blockSignals(True)
        self._model_combo.clear()
        settings = self._catalog.get_settings()
        if settings is None or not settings.api_key or settings.provider_id is None:
            self._model_combo.hide()
            self._model_combo.blockSignals(False)
            self._manager.current_model = None
            return

        selected = None
        for model in self._catalog.models_for_provider(settings.provider_id):
            self._model_combo.addItem(model.name)
            if model.id == settings.model_id:
                selected = model.name
        if selected:
            self._model_combo.setCurrentText(selected)
        self._model_combo.blockSignals(False)
        self._model_combo.show()
        self._manager.current_model = self._model_combo.currentText() or None

    def _on_model_changed(self, model_name: str) -> None:
        self._manager.current_model = model_name or None
        logger.info("Selected model: %s", model_name)

    def closeEvent(self, event: QCloseEvent) -> None:
        self._manager.remove_listener(self._bridge)
        self._manager.shutdown()
        super().closeEvent(event)
