"""Tests for terminal-safe output and match formatting helpers."""
import io
import sys

import pytest

from lispref.analyzer.forms import Span
from lispref.utils.logger import ICON_MAP, is_utf8_capable, sanitize_for_terminal
from lispref.utils.safe_console import SafeConsole
from lispref.utils.text import LineIndex, context_lines, snippet


class FakeStdout(io.StringIO):
    def __init__(self, encoding):
        super().__init__()
        self._encoding = encoding

    @property
    def encoding(self):
        return self._encoding


class TestSanitize:
    """Glyph replacement."""

    def test_forced_replacement(self):
        assert sanitize_for_terminal("✓ Found 2 in a…", force=True) == "[OK] Found 2 in a..."

    def test_report_glyphs_are_covered(self):
        assert set(ICON_MAP) == {"✓", "⚠", "…"}

    def test_every_replacement_is_ascii(self):
        assert all(replacement.isascii() for replacement in ICON_MAP.values())

    @pytest.mark.parametrize("encoding,capable", [
        ("utf-8", True),
        ("UTF8", True),
        ("cp1252", False),
        ("ascii", False),
    ])
    def test_utf8_detection(self, monkeypatch, encoding, capable):
        monkeypatch.setattr(sys, "stdout", FakeStdout(encoding))
        assert is_utf8_capable() is capable

    def test_utf8_terminal_keeps_glyphs(self, monkeypatch):
        monkeypatch.setattr(sys, "stdout", FakeStdout("utf-8"))
        assert sanitize_for_terminal("✓ ok") == "✓ ok"

    def test_legacy_terminal_gets_ascii(self, monkeypatch):
        monkeypatch.setattr(sys, "stdout", FakeStdout("cp1252"))
        assert sanitize_for_terminal("⚠ careful") == "[WARN] careful"


class TestSafeConsole:
    """Rich console wrapper."""

    def test_sanitizing_console(self):
        output = io.StringIO()
        console = SafeConsole(sanitize=True, file=output, width=80)
        console.print("[bold green]✓ Found 1 reference[/bold green]")
        assert output.getvalue().strip() == "[OK] Found 1 reference"

    def test_sanitized_warning_keeps_its_text(self):
        output = io.StringIO()
        console = SafeConsole(sanitize=True, file=output, width=80)
        console.print("[yellow]⚠ Skipped[/yellow] bad.el")
        assert output.getvalue().strip() == "[WARN] Skipped bad.el"

    def test_plain_console_keeps_glyphs(self):
        output = io.StringIO()
        console = SafeConsole(sanitize=False, file=output, width=80)
        console.print("✓ Found 1 reference", markup=False)
        assert output.getvalue().strip() == "✓ Found 1 reference"


class TestLineIndex:
    """Offsets to line and column."""

    TEXT = "(a)\n(bc\n d)\n"

    def test_positions(self):
        index = LineIndex(self.TEXT)
        assert index.position(0) == (1, 1)
        assert index.position(4) == (2, 1)
        assert index.position(9) == (3, 2)

    def test_line_text(self):
        index = LineIndex(self.TEXT)
        assert index.line_text(1) == "(a)"
        assert index.line_text(3) == " d)"
        assert index.line_text(4) == ""


class TestSnippets:
    """Short renderings of matches."""

    def test_single_line(self):
        assert snippet("(foo 1) (bar)", Span(0, 7)) == "(foo 1)"

    def test_multi_line_match_is_marked(self):
        assert snippet("(foo\n 1)", Span(0, 8)) == "(foo …"

    def test_long_match_is_shortened(self):
        text = "(" + "x " * 60 + ")"
        result = snippet(text, Span(0, len(text)), max_width=20)
        assert len(result) == 20
        assert result.endswith("…")

    def test_context_lines(self):
        text = "one\n(foo\n bar)\nfour\nfive\n"
        index = LineIndex(text)
        assert context_lines(index, Span(4, 14), 1) == [
            (1, "one"), (2, "(foo"), (3, " bar)"), (4, "four")
        ]
        assert context_lines(index, Span(0, 3), 0) == [(1, "one")]
