"""Lazy child-span indexing for forms whose overall span is already known."""
from typing import List

from .forms import Span
from .reader import Reader

# Shorthand prefixes, longest first. Each stands for a two-element list whose
# head is the synthetic symbol (quote, function, ...) and whose second element
# is the expression after the prefix.
_SHORTHAND_PREFIXES = ("#'", ",@", "'", "`", ",")

# Opening delimiters of compound forms and their widths.
_OPENERS = (("#s(", 3), ("#[", 2), ("(", 1), ("[", 1))


class ChildSpanIndexer:
    """Computes the spans of a compound form's immediate children.

    The reader only reports the span of each top-level form. Spans for the
    children of a nested form are worked out here, on demand, by scanning one
    expression at a time from just past the opening delimiter.
    """

    def __init__(self, text: str, path: str = "<string>"):
        self.text = text
        self._reader = Reader(text, path)

    def child_spans(self, span: Span) -> List[Span]:
        """Spans of the immediate children of the compound form at `span`.

        Scanning stops at the first expression that does not end strictly
        before the parent's closing delimiter.

        Args:
            span: Span of a list, vector, record, byte-code or shorthand form

        Returns:
            Child spans in source order (empty for atoms and empty lists)
        """
        text = self.text
        start, end = span

        for prefix in _SHORTHAND_PREFIXES:
            if text.startswith(prefix, start):
                head = Span(start, start + len(prefix))
                inner = self._reader.scan(head.end, end)
                return [head] if inner is None else [head, inner]

        for opener, width in _OPENERS:
            if text.startswith(opener, start):
                break
        else:
            return []

        # The closing delimiter is the last character of the span.
        limit = end - 1
        spans = []
        pos = start + width
        while True:
            child = self._reader.scan(pos, limit)
            if child is None:
                break
            spans.append(child)
            pos = child.end
        return spans

    def close(self) -> None:
        self._reader.close()
        self.text = ""
