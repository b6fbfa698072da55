from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

GREETING_TEXT = "How can I help you today?"
TITLE_MAX_LENGTH = 30
TITLE_DELIMITERS = ("?", ".", "!", "\n")

SENDER_LABELS = {
    "user": "You",
    "assistant": "AI",
    "system": "System",
}


def utc_now_iso() -> str:
    return datetime.now(tz=timezone.utc).replace(microsecond=0).isoformat()


ChatRole = Literal["system", "user", "assistant"]


def default_title(session_id: int) -> str:
    return f"Chat {session_id}"


def derive_title(text: str, max_length: int = TITLE_MAX_LENGTH) -> str:
    """Build a session title from the first sentence of a user message.

    Returns an empty string when the text has no usable leading sentence.
    """

    positions = [text.find(d) for d in TITLE_DELIMITERS if d in text]
    title = text[: min(positions)] if positions else text
    title = title.strip()
    if len(title) > max_length:
        title = title[: max_length - 3] + "..."
    return title


@dataclass(frozen=True)
class Turn:
    role: ChatRole
    text: str
    created_at: str = field(default_factory=utc_now_iso)

    @property
    def is_assistant(self) -> bool:
        # system メッセージもアシスタント側（左寄せ）として扱う
        return self.role != "user"

    @property
    def sender(self) -> str:
        return SENDER_LABELS[self.role]


@dataclass
class Session:
    session_id: int
    title: str = ""
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)
    turns: list[Turn] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.title:
            self.title = default_title(self.session_id)

    @property
    def has_default_title(self) -> bool:
        return self.title == default_title(self.session_id)

    def append_turn(self, turn: Turn) -> bool:
        """Append a turn; return True when the title changed as a result."""

        self.turns.append(turn)
        self.updated_at = utc_now_iso()
        if turn.role == "user" and self.has_default_title:
            # 初回のユーザ発話からタイトルを自動生成（ユーザ指定済みなら触らない）
            title = derive_title(turn.text)
            if title:
                self.title = title
                return True
        return False

    def snapshot(self) -> list[Turn]:
        return list(self.turns)
