from __future__ import annotations

from typing import Iterable

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import (
    QInputDialog,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from ..models import Session


class HistoryPanel(QWidget):
    session_selected = Signal(int)
    new_session_requested = Signal()
    rename_requested = Signal(int, str)
    delete_requested = Signal(int)
    settings_requested = Signal()

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._sessions: list[Session] = []
        self._streaming: set[int] = set()

        title = QLabel("Chat History", self)
        title.setAlignment(Qt.AlignCenter)
        title.setStyleSheet("font-weight: 600; font-size: 14px;")

        self._list = QListWidget(self)
        # 一覧の再構築中に会話が切り替わらないよう selectionChanged で拾う
        self._list.itemSelectionChanged.connect(self._on_selection_changed)
        self._list.itemDoubleClicked.connect(lambda _item: self._on_rename_clicked())

        self._new_button = QPushButton("New Chat", self)
        self._new_button.clicked.connect(self.new_session_requested.emit)

        self._rename_button = QPushButton("Rename", self)
        self._rename_button.clicked.connect(self._on_rename_clicked)
        self._rename_button.setEnabled(False)

        self._delete_button = QPushButton("Delete", self)
        self._delete_button.clicked.connect(self._on_delete_clicked)
        self._delete_button.setEnabled(False)

        self._settings_button = QPushButton("Settings", self)
        self._settings_button.clicked.connect(self.settings_requested.emit)

        layout = QVBoxLayout()
        layout.addWidget(title)
        layout.addWidget(self._new_button)
        layout.addWidget(self._list, stretch=1)
        layout.addWidget(self._rename_button)
        layout.addWidget(self._delete_button)
        layout.addWidget(self._settings_button)
        layout.setContentsMargins(4, 4, 4, 4)
        layout.setSpacing(8)
        self.setLayout(layout)

    def set_sessions(self, sessions: Iterable[Session], selected_id: int | None = None) -> None:
        if selected_id is None:
            selected_id = self.current_session_id
        self._sessions = list(sessions)
        self._list.blockSignals(True)
        self._list.clear()
        for session in self._sessions:
            item = QListWidgetItem(self._format_title(session))
            item.setData(Qt.UserRole, session.session_id)
            self._list.addItem(item)
            if session.session_id == selected_id:
                self._list.setCurrentItem(item)
        self._list.blockSignals(False)
        self._update_button_states()

    def set_streaming(self, session_id: int, streaming: bool) -> None:
        if streaming:
            self._streaming.add(session_id)
        else:
            self._streaming.discard(session_id)
        for index in range(self._list.count()):
            item = self._list.item(index)
            if item.data(Qt.UserRole) == session_id:
                session = next(s for s in self._sessions if s.session_id == session_id)
                item.setText(self._format_title(session))
                return

    @property
    def current_session_id(self) -> int | None:
        item = self._list.currentItem()
        if not item:
            return None
        return item.data(Qt.UserRole)

    def _format_title(self, session: Session) -> str:
        # 応答生成中の会話には印を付けて、裏で進んでいることが分かるようにする
        marker = " …" if session.session_id in self._streaming else ""
        return f"{session.title}{marker}"

    def _on_selection_changed(self) -> None:
        session_id = self.current_session_id
        self._update_button_states()
        if session_id is not None:
            self.session_selected.emit(session_id)

    def _on_rename_clicked(self) -> None:
        session_id = self.current_session_id
        if session_id is None:
            return
        current = self._list.currentItem().text().removesuffix(" …")
        title, accepted = QInputDialog.getText(self, "Rename Chat", "Title:", text=current)
        if accepted and title.strip():
            self.rename_requested.emit(session_id, title.strip())

    def _on_delete_clicked(self) -> None:
        session_id = self.current_session_id
        if session_id is not None:
            self.delete_requested.emit(session_id)

    def _update_button_states(self) -> None:
        is_selected = self.current_session_id is not None
        self._rename_button.setEnabled(is_selected)
        self._delete_button.setEnabled(is_selected)
