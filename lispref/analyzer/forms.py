"""Form model shared by the reader, walker and reference finder."""
from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional, Tuple, Union


@dataclass(frozen=True)
class Symbol:
    """A symbol, interned (`foo`) or uninterned (`#:foo`).

    Interned symbols with the same name are the same symbol. An uninterned
    symbol never equals an interned one, even when the names match.
    """
    name: str
    interned: bool = True

    def __str__(self) -> str:
        return self.name if self.interned else f"#:{self.name}"


@dataclass(frozen=True)
class String:
    """A string literal."""
    value: str


@dataclass(frozen=True)
class Char:
    """A character literal such as ?a or ?\\C-x, stored as its code point."""
    code: int


@dataclass(frozen=True)
class SList:
    """A list form. `tail` is None for a proper list, otherwise the cdr after the dot."""
    items: Tuple["Form", ...]
    tail: Optional["Form"] = None


@dataclass(frozen=True)
class Vector:
    """A vector-like compound: [...], #s(...) records and #[...] byte-code."""
    items: Tuple["Form", ...]
    kind: str = "vector"  # vector, record, bytecode


@dataclass(frozen=True)
class BoolVector:
    """A #&N"..." bool-vector literal (treated as an atom)."""
    length: int
    data: str


Form = Union[Symbol, String, Char, SList, Vector, BoolVector, int, float]

QUOTE = Symbol("quote")
FUNCTION = Symbol("function")
BACKQUOTE = Symbol("`")
COMMA = Symbol(",")
COMMA_AT = Symbol(",@")


class Span(NamedTuple):
    """Half-open character range [start, end) into the source text."""
    start: int
    end: int

    def shift(self, offset: int) -> "Span":
        return Span(self.start + offset, self.end + offset)

    def overlaps(self, other: "Span") -> bool:
        return self.start < other.end and other.start < self.end


class SymbolOccurrence(NamedTuple):
    """A symbol token inside a top-level form, relative to the form's start."""
    symbol: Symbol
    offset: int
    length: int


@dataclass(frozen=True)
class PositionedForm:
    """A top-level form with its absolute span and the symbols it mentions."""
    form: Form
    span: Span
    occurrences: Tuple[SymbolOccurrence, ...] = field(default_factory=tuple)

    def mentions(self, symbol: Symbol) -> bool:
        """Cheap pre-filter: does any leaf symbol token equal `symbol`?"""
        return any(occ.symbol == symbol for occ in self.occurrences)

    def absolute_spans(self, symbol: Symbol) -> List[Span]:
        """Absolute spans of every token of `symbol` inside this form."""
        return [
            Span(occ.offset, occ.offset + occ.length).shift(self.span.start)
            for occ in self.occurrences
            if occ.symbol == symbol
        ]


class PathEntry(NamedTuple):
    """One frame of ancestor context: the enclosing operator and our index in it."""
    operator: Optional[Symbol]
    index: int


# Innermost frame first.
Path = Tuple[PathEntry, ...]


class MatchResult(NamedTuple):
    """A matched form and where it sits in the file."""
    span: Span
    form: Form


@dataclass(frozen=True)
class SourceFile:
    """A file to search. The text is read once, before the search starts."""
    path: str
    text: str


def is_compound(form: Form) -> bool:
    return isinstance(form, (SList, Vector))


def is_proper_list(form: Form) -> bool:
    """True for nil-terminated lists. Dotted lists are never descended into."""
    return isinstance(form, SList) and form.tail is None


def operator_of(form: Form) -> Optional[Symbol]:
    """Head symbol of a list form, e.g. `defun` for (defun ...).

    Returns None for atoms, vectors, empty lists and lists headed by a
    non-symbol.
    """
    if not isinstance(form, SList) or not form.items:
        return None
    head = form.items[0]
    return head if isinstance(head, Symbol) else None


def quoted(form: Form) -> SList:
    """Build (quote FORM), what the reader produces for 'FORM."""
    return SList((QUOTE, form))


def to_source(form: Form) -> str:
    """Print a form back as Lisp source. Used for display and test messages."""
    if isinstance(form, Symbol):
        return str(form)
    if isinstance(form, String):
        escaped = form.value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    if isinstance(form, Char):
        return f"?{chr(form.code)}" if 32 < form.code < 127 else f"?\\x{form.code:x}"
    if isinstance(form, BoolVector):
        return f'#&{form.length}"{form.data}"'
    if isinstance(form, Vector):
        inner = " ".join(to_source(item) for item in form.items)
        opener = {"record": "#s(", "bytecode": "#["}.get(form.kind, "[")
        closer = ")" if form.kind == "record" else "]"
        return f"{opener}{inner}{closer}"
    if isinstance(form, SList):
        if len(form.items) == 2 and form.tail is None:
            prefix = _SHORTHAND_PRINT.get(form.items[0])
            if prefix is not None:
                return prefix + to_source(form.items[1])
        inner = " ".join(to_source(item) for item in form.items)
        if form.tail is not None:
            inner = f"{inner} . {to_source(form.tail)}"
        return f"({inner})"
    return repr(form)


_SHORTHAND_PRINT = {
    QUOTE: "'",
    FUNCTION: "#'",
    BACKQUOTE: "`",
    COMMA: ",",
    COMMA_AT: ",@",
}
