"""Tests for sessions, turns and title derivation."""

from llmschat.models import (
    GREETING_TEXT,
    Session,
    Turn,
    default_title,
    derive_title,
)


class TestDeriveTitle:
    """Tests for building a title from the first user message."""

    def test_first_sentence(self):
        assert derive_title("Hello there. How are you?") == "Hello there"

    def test_question_mark(self):
        assert derive_title("What is Python? Tell me more") == "What is Python"

    def test_exclamation(self):
        assert derive_title("Great work! Thanks") == "Great work"

    def test_newline(self):
        assert derive_title("Line one\nline two") == "Line one"

    def test_earliest_delimiter_wins(self):
        assert derive_title("Wait! Is it. Really?") == "Wait"

    def test_strips_whitespace(self):
        assert derive_title("   padded words   ") == "padded words"

    def test_no_delimiter(self):
        assert derive_title("just some words") == "just some words"

    def test_exactly_max_length_is_kept(self):
        text = "a" * 30
        assert derive_title(text) == text

    def test_truncates_long_title(self):
        title = derive_title("b" * 40)
        assert title == "b" * 27 + "..."
        assert len(title) == 30

    def test_only_delimiter(self):
        assert derive_title("?") == ""

    def test_empty(self):
        assert derive_title("") == ""


class TestTurn:
    """Tests for turn labels."""

    def test_sender_labels(self):
        assert Turn(role="user", text="hi").sender == "You"
        assert Turn(role="assistant", text="hi").sender == "AI"
        assert Turn(role="system", text="oops").sender == "System"

    def test_system_turn_is_shown_on_assistant_side(self):
        assert Turn(role="system", text="oops").is_assistant
        assert not Turn(role="user", text="hi").is_assistant


class TestSession:
    """Tests for session titles and append-only turns."""

    def test_default_title(self):
        session = Session(session_id=3)
        assert session.title == default_title(3) == "Chat 3"
        assert session.has_default_title

    def test_first_user_turn_sets_title(self):
        session = Session(session_id=1)
        session.append_turn(Turn(role="assistant", text=GREETING_TEXT))
        changed = session.append_turn(Turn(role="user", text="Plan a trip to Kyoto. Budget is low"))
        assert changed
        assert session.title == "Plan a trip to Kyoto"

    def test_later_user_turns_keep_title(self):
        session = Session(session_id=1)
        session.append_turn(Turn(role="user", text="First question?"))
        changed = session.append_turn(Turn(role="user", text="Second question?"))
        assert not changed
        assert session.title == "First question"

    def test_assistant_turn_never_sets_title(self):
        session = Session(session_id=2)
        assert not session.append_turn(Turn(role="assistant", text="Hello from the model."))
        assert session.title == "Chat 2"

    def test_blank_title_keeps_default_until_usable_message(self):
        session = Session(session_id=4)
        assert not session.append_turn(Turn(role="user", text="?!"))
        assert session.title == "Chat 4"
        assert session.append_turn(Turn(role="user", text="Real topic"))
        assert session.title == "Real topic"

    def test_renamed_session_is_not_retitled(self):
        session = Session(session_id=5, title="My notes")
        assert not session.append_turn(Turn(role="user", text="Something else"))
        assert session.title == "My notes"

    def test_turns_keep_insertion_order(self):
        session = Session(session_id=1)
        texts = ["one", "two", "three"]
        for text in texts:
            session.append_turn(Turn(role="user", text=text))
        assert [turn.text for turn in session.turns] == texts

    def test_snapshot_is_a_copy(self):
        session = Session(session_id=1)
        session.append_turn(Turn(role="user", text="hi"))
        snapshot = session.snapshot()
        snapshot.append(Turn(role="user", text="extra"))
        assert len(session.turns) == 1
