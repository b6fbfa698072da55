from __future__ import annotations

from PySide6.QtCore import QObject, Signal

from ..models import Turn


class ChatSignalBridge(QObject):
    """Re-emits chat manager callbacks as Qt signals.

    The manager calls these methods from worker threads; Qt queues the
    signals so connected slots run on the GUI thread.
    """

    turn_appended = Signal(int, object)
    stream_updated = Signal(int, str)
    sessions_changed = Signal()

    def on_turn_appended(self, session_id: int, turn: Turn) -> None:
        self.turn_appended.emit(session_id, turn)

    def on_stream_update(self, session_id: int, partial_text: str) -> None:
        self.stream_updated.emit(session_id, partial_text)

    def on_sessions_changed(self) -> None:
        self.sessions_changed.emit()
