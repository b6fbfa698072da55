"""Tests for turning transcript turns into HTML."""

import pytest

pytest.importorskip("PySide6.QtWidgets")

from llmschat.ui.conversation_widget import format_turn_html, render_markdown  # noqa: E402


class TestRenderMarkdown:
    """Tests for markdown rendering of replies."""

    def test_single_paragraph_is_unwrapped(self):
        assert render_markdown("**bold**") == "<strong>bold</strong>"

    def test_fenced_code(self):
        html = render_markdown("```\nprint(1)\n```")
        assert "<code>" in html
        assert "print(1)" in html

    def test_raw_html_block_is_escaped(self):
        html = render_markdown("<script>alert(1)</script>")
        assert "<script>" not in html
        assert "&lt;script&gt;" in html

    def test_inline_html_is_escaped(self):
        html = render_markdown("say <b>hi</b> now")
        assert "<b>" not in html
        assert "&lt;b&gt;hi&lt;/b&gt;" in html


class TestFormatTurn:
    """Tests for per-role transcript HTML."""

    def test_user_text_is_escaped(self):
        html = format_turn_html("user", "<b>hi</b>")
        assert "&lt;b&gt;hi&lt;/b&gt;" in html
        assert 'align="right"' in html
        assert ">You<" in html

    def test_assistant_is_markdown(self):
        html = format_turn_html("assistant", "*hey*")
        assert "<em>hey</em>" in html
        assert ">AI<" in html

    def test_assistant_html_is_escaped(self):
        html = format_turn_html("assistant", "<img src=x onerror=alert(1)>")
        assert "<img" not in html
        assert "&lt;img" in html

    def test_system_label(self):
        assert ">System<" in format_turn_html("system", "Error: boom")


class TestThemes:
    """Tests for locating bundled stylesheets."""

    def test_dracula_is_bundled(self):
        from llmschat.resources import available_themes, theme_path

        assert "dracula" in available_themes()
        assert theme_path("dracula").is_file()
