"""Helpers for turning match spans into something a person can read."""
from bisect import bisect_right
from typing import List, Tuple

from lispref.analyzer.forms import Span


class LineIndex:
    """Maps character offsets in a text to 1-based line and column numbers."""

    def __init__(self, text: str):
        self.text = text
        self.line_starts: List[int] = [0]
        for index, ch in enumerate(text):
            if ch == "\n":
                self.line_starts.append(index + 1)

    def position(self, offset: int) -> Tuple[int, int]:
        """(line, column) of `offset`, both starting at 1."""
        line = bisect_right(self.line_starts, offset)
        return line, offset - self.line_starts[line - 1] + 1

    def line_text(self, line: int) -> str:
        start = self.line_starts[line - 1]
        end = self.line_starts[line] - 1 if line < len(self.line_starts) else len(self.text)
        return self.text[start:end]


def snippet(text: str, span: Span, max_width: int = 80) -> str:
    """First line of the matched text, shortened to `max_width` characters."""
    matched = text[span.start:span.end]
    first_line = matched.split("\n", 1)[0]
    if "\n" in matched:
        first_line += " …"
    if len(first_line) > max_width:
        first_line = first_line[: max_width - 1] + "…"
    return first_line


def context_lines(index: LineIndex, span: Span, context: int) -> List[Tuple[int, str]]:
    """Lines around a match as (line_number, text) pairs."""
    first, _ = index.position(span.start)
    last, _ = index.position(max(span.start, span.end - 1))
    low = max(1, first - context)
    high = min(len(index.line_starts), last + context)
    return [(number, index.line_text(number)) for number in range(low, high + 1)]
