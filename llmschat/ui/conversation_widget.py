from __future__ import annotations

import html
from typing import Iterable

import markdown
from markdown.extensions import Extension
from PySide6.QtCore import Signal
from PySide6.QtGui import QFont, QKeySequence, QShortcut, QTextCursor
from PySide6.QtWidgets import (
    QHBoxLayout,
    QLabel,
    QPlainTextEdit,
    QPushButton,
    QTextEdit,
    QVBoxLayout,
    QWidget,
)

from ..models import SENDER_LABELS, Turn


class EscapeRawHtml(Extension):
    """Treat raw HTML in model output as plain text."""

    def extendMarkdown(self, md) -> None:
        md.preprocessors.deregister("html_block")
        md.inlinePatterns.deregister("html")


MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "nl2br", EscapeRawHtml()]

ROLE_COLORS = {
    "user": "#8be9fd",
    "assistant": "#50fa7b",
    "system": "#ff5555",
}


def render_markdown(text: str) -> str:
    content = markdown.markdown(text, extensions=MARKDOWN_EXTENSIONS)
    # QTextEdit に挿入するときに余計な段落が入らないよう外側の <p> を外す
    if content.startswith("<p>") and content.endswith("</p>") and content.count("<p>") == 1:
        content = content[3:-4]
    return content


def format_turn_html(role: str, text: str) -> str:
    if role == "user":
        content = html.escape(text).replace("\n", "<br>")
        align = "right"
    else:
        content = render_markdown(text)
        align = "left"
    color = ROLE_COLORS.get(role, "#f8f8f2")
    label = SENDER_LABELS.get(role, role)
    role_html = f'<p style="margin-bottom:0px;"><i style="color:{color}">{label}</i></p>'
    return f'<div align="{align}" style="margin-bottom: 10px;">{role_html}{content}</div><hr>'


class ConversationWidget(QWidget):
    message_submitted = Signal(str)

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._turns: list[Turn] = []
        self._pending: str | None = None
        self._is_busy = False

        self._transcript = QTextEdit(self)
        self._transcript.setReadOnly(True)
        self._transcript.setMinimumHeight(400)
        font = QFont()
        font.setPointSize(12)
        self._transcript.setFont(font)

        self._status_label = QLabel("", self)
        self._status_label.setObjectName("StatusLabel")

        self._input = QPlainTextEdit(self)
        self._input.setPlaceholderText("Type your message...")
        self._input.setFixedHeight(80)

        self._send_button = QPushButton("Send", self)
        self._send_button.setFixedWidth(100)
        self._send_button.clicked.connect(self._handle_submit)

        # Ctrl+Enter でも送信できるようにする
        shortcut = QShortcut(QKeySequence("Ctrl+Return"), self._input)
        shortcut.activated.connect(self._handle_submit)

        input_row = QHBoxLayout()
        input_row.addWidget(self._input, stretch=1)
        input_row.addWidget(self._send_button)
        input_row.setSpacing(8)

        layout = QVBoxLayout()
        layout.addWidget(self._transcript, stretch=1)
        layout.addWidget(self._status_label)
        layout.addLayout(input_row)
        layout.setContentsMargins(8, 8, 8, 8)
        layout.setSpacing(10)
        self.setLayout(layout)
        self._refresh_controls()

    # Public API ---------------------------------------------------------
    def display_session(self, turns: Iterable[Turn], pending: str | None = None) -> None:
        self._turns = list(turns)
        self._pending = pending
        self._render()

    def append_turn(self, turn: Turn) -> None:
        self._turns.append(turn)
        if turn.role != "user":
            # 応答が確定したら生成中の表示は確定済みメッセージに置き換える
            self._pending = None
        self._render()

    def update_pending(self, partial_text: str) -> None:
        self._pending = partial_text
        self._render()

    def set_busy(self, is_busy: bool, status_text: str | None = None) -> None:
        self._is_busy = is_busy
        self._refresh_controls()
        if status_text:
            self._status_label.setText(status_text)
        elif not is_busy:
            self._status_label.clear()

    # Internal helpers ---------------------------------------------------
    def _handle_submit(self) -> None:
        if self._is_busy:
            return
        text = self._input.toPlainText().strip()
        if not text:
            return
        self._input.clear()
        self.message_submitted.emit(text)

    def _render(self) -> None:
        parts = [format_turn_html(turn.role, turn.text) for turn in self._turns]
        if self._pending is not None:
            parts.append(format_turn_html("assistant", self._pending or "Loading..."))
        self._transcript.setHtml("".join(parts))
        self._transcript.moveCursor(QTextCursor.End)

    def _refresh_controls(self) -> None:
        self._send_button.setDisabled(self._is_busy)
        self._input.setReadOnly(self._is_busy)
