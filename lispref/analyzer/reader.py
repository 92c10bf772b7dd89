"""Position-tracking reader for Emacs Lisp source text.

Turns raw text into top-level forms. Every top-level form comes back with its
absolute span and a table of the symbol tokens inside it, so callers can
locate symbols without re-parsing.

Two ways for reading to end:
- The text runs out, possibly in the middle of a trailing form. That is a
  normal stop: everything read so far is returned.
- Anything else that cannot be read raises MalformedReadError with the file
  path and offset.
"""
import math
import re
import unicodedata
from typing import List, Optional, Tuple, Union

from .forms import (
    BACKQUOTE,
    COMMA,
    COMMA_AT,
    FUNCTION,
    QUOTE,
    BoolVector,
    Char,
    Form,
    PositionedForm,
    SList,
    Span,
    String,
    Symbol,
    SymbolOccurrence,
    Vector,
)


class MalformedReadError(ValueError):
    """Raised when a file contains text the reader cannot make sense of."""

    def __init__(self, path: str, offset: int, reason: str):
        self.path = path
        self.offset = offset
        self.reason = reason
        super().__init__(f"malformed input in {path} at offset {offset}: {reason}")


class _Truncated:
    """Sentinel for text that ends inside a form."""

    def __repr__(self) -> str:
        return "<truncated>"


TRUNCATED = _Truncated()

# Characters that end a symbol or number token.
_TOKEN_DELIMITERS = frozenset('"\';()[]#`,')
_CLOSERS = frozenset(")]")

_INT_RE = re.compile(r"[+-]?[0-9]+\.?\Z")
_FLOAT_RE = re.compile(
    r"[+-]?(?:[0-9]+\.[0-9]+|\.[0-9]+|[0-9]+)(?:e(?:[+-]?[0-9]+|\+INF|\+NaN))?\Z"
)
_RADIX_PREFIXES = {"x": 16, "X": 16, "o": 8, "O": 8, "b": 2, "B": 2}

_SIMPLE_ESCAPES = {
    "a": 7, "b": 8, "t": 9, "n": 10, "v": 11, "f": 12,
    "r": 13, "e": 27, "d": 127, "s": 32,
}

# Modifier bits Emacs sets on character codes.
_MODIFIER_BITS = {
    "A": 0x0400000,
    "s": 0x0800000,
    "H": 0x1000000,
    "S": 0x2000000,
    "C": 0x4000000,
    "M": 0x8000000,
}

ReadResult = Union[Form, _Truncated]


def _is_space(ch: str) -> bool:
    return ch <= " " or ch == "\xa0"


def _parse_number(token: str) -> Optional[Union[int, float]]:
    """Return the number a token spells, or None if it is a symbol."""
    if _INT_RE.match(token):
        return int(token.rstrip("."))
    if _FLOAT_RE.match(token) and any(ch in token for ch in ".e"):
        if token.endswith("+INF"):
            return -math.inf if token.startswith("-") else math.inf
        if token.endswith("+NaN"):
            return math.nan
        return float(token)
    return None


def _control(code: int) -> int:
    """Apply the control modifier the way ?\\C-x and ?\\^x do."""
    base = code & 0x3FFFFF
    if base == ord("?"):
        return 127 | (code & ~0x3FFFFF)
    if ord("@") <= (base & ~0x20) <= ord("_"):
        return (base & 0x1F) | (code & ~0x3FFFFF)
    return code | _MODIFIER_BITS["C"]


class Reader:
    """Reads forms out of one file's text.

    The reader holds the text and a cursor. It is a per-file scratch object:
    close() releases both once a search is done with the file.
    """

    def __init__(self, text: str, path: str = "<string>"):
        self.text = text
        self.path = path
        self.pos = 0
        self._symbols: List[Tuple[Symbol, int, int]] = []

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    def read_all(self) -> List[PositionedForm]:
        """Read every complete top-level form from the start of the text."""
        self.pos = 0
        forms = []
        while True:
            positioned = self.read_next()
            if positioned is None:
                break
            forms.append(positioned)
        return forms

    def read_next(self) -> Optional[PositionedForm]:
        """Read the next top-level form, or None once the text is exhausted.

        A trailing form cut off by the end of the text also yields None.
        """
        self._skip_whitespace()
        if self.pos >= len(self.text):
            return None
        start = self.pos
        if self.text[start] in _CLOSERS:
            self._fail(start, f"unexpected '{self.text[start]}'")

        self._symbols = []
        form = self._read_form()
        if form is TRUNCATED:
            self.pos = len(self.text)
            return None

        occurrences = tuple(
            SymbolOccurrence(symbol, offset - start, length)
            for symbol, offset, length in self._symbols
        )
        self._symbols = []
        return PositionedForm(form=form, span=Span(start, self.pos), occurrences=occurrences)

    def scan(self, pos: int, limit: Optional[int] = None) -> Optional[Span]:
        """Span of the single expression starting at or after `pos`.

        Returns None at a boundary: a closing delimiter, the end of the text,
        or an expression that would end past `limit`. A lone dot between the
        elements of a dotted list is skipped over.
        """
        self.pos = pos
        self._skip_whitespace()
        if self._at_dot():
            self.pos += 1
            self._skip_whitespace()
        if self.pos >= len(self.text) or self.text[self.pos] in _CLOSERS:
            return None

        start = self.pos
        saved = self._symbols
        self._symbols = []
        try:
            form = self._read_form()
        finally:
            self._symbols = saved
        if form is TRUNCATED:
            return None
        if limit is not None and self.pos > limit:
            return None
        return Span(start, self.pos)

    def close(self) -> None:
        """Drop the text and any half-built state."""
        self.text = ""
        self.pos = 0
        self._symbols = []

    # ------------------------------------------------------------------
    # Lexical helpers
    # ------------------------------------------------------------------

    def _fail(self, offset: int, reason: str):
        raise MalformedReadError(self.path, offset, reason)

    def _skip_whitespace(self) -> None:
        """Move past whitespace, ; comments, #! lines and #@N skip blocks."""
        text = self.text
        n = len(text)
        while self.pos < n:
            ch = text[self.pos]
            if _is_space(ch):
                self.pos += 1
            elif ch == ";" or text.startswith("#!", self.pos):
                end = text.find("\n", self.pos)
                self.pos = n if end == -1 else end + 1
            elif text.startswith("#@", self.pos):
                self._skip_block_comment()
            else:
                break

    def _skip_block_comment(self) -> None:
        # #@00 skips to the end of the file; #@N skips N characters after the digits.
        text = self.text
        digits_start = self.pos + 2
        digits_end = digits_start
        while digits_end < len(text) and text[digits_end].isdigit():
            digits_end += 1
        digits = text[digits_start:digits_end]
        if not digits:
            self._fail(self.pos, "invalid #@ syntax")
        if digits == "00":
            self.pos = len(text)
        else:
            self.pos = min(len(text), digits_end + int(digits))

    def _at_dot(self) -> bool:
        text = self.text
        if self.pos >= len(text) or text[self.pos] != ".":
            return False
        following = self.pos + 1
        return following >= len(text) or _is_space(text[following]) or text[following] in _TOKEN_DELIMITERS

    def _record_symbol(self, symbol: Symbol, start: int, end: int) -> Symbol:
        self._symbols.append((symbol, start, end - start))
        return symbol

    # ------------------------------------------------------------------
    # Form readers
    # ------------------------------------------------------------------

    def _read_form(self) -> ReadResult:
        """Read one form starting exactly at self.pos (no leading whitespace)."""
        text = self.text
        start = self.pos
        ch = text[start]

        if ch == "(":
            self.pos += 1
            return self._read_list_body()
        if ch == "[":
            self.pos += 1
            items = self._read_sequence("]")
            return items if items is TRUNCATED else Vector(items)
        if ch == '"':
            return self._read_string()
        if ch == "?":
            return self._read_character()
        if ch == "'":
            return self._read_prefixed(QUOTE, 1)
        if ch == "`":
            return self._read_prefixed(BACKQUOTE, 1)
        if ch == ",":
            if text.startswith(",@", start):
                return self._read_prefixed(COMMA_AT, 2)
            return self._read_prefixed(COMMA, 1)
        if ch == "#":
            return self._read_dispatch()
        if self._at_dot():
            self._fail(start, "invalid dot")
        return self._read_atom()

    def _read_next_form(self) -> ReadResult:
        """Skip whitespace, then read a form that must be present."""
        self._skip_whitespace()
        if self.pos >= len(self.text):
            return TRUNCATED
        if self.text[self.pos] in _CLOSERS:
            self._fail(self.pos, f"unexpected '{self.text[self.pos]}'")
        return self._read_form()

    def _read_prefixed(self, head: Symbol, width: int) -> ReadResult:
        self.pos += width
        inner = self._read_next_form()
        if inner is TRUNCATED:
            return TRUNCATED
        return SList((head, inner))

    def _read_list_body(self) -> ReadResult:
        """Read list elements after '(' up to and including ')'."""
        text = self.text
        items: List[Form] = []
        while True:
            self._skip_whitespace()
            if self.pos >= len(text):
                return TRUNCATED
            ch = text[self.pos]
            if ch == ")":
                self.pos += 1
                return SList(tuple(items))
            if ch == "]":
                self._fail(self.pos, "unexpected ']' in list")
            if self._at_dot():
                if not items:
                    self._fail(self.pos, "invalid dot")
                return self._read_dotted_tail(items)
            item = self._read_form()
            if item is TRUNCATED:
                return TRUNCATED
            items.append(item)

    def _read_dotted_tail(self, items: List[Form]) -> ReadResult:
        dot = self.pos
        self.pos += 1
        self._skip_whitespace()
        if self.pos < len(self.text) and self.text[self.pos] == ")":
            self._fail(dot, "nothing after dot")
        tail = self._read_next_form()
        if tail is TRUNCATED:
            return TRUNCATED
        self._skip_whitespace()
        if self.pos >= len(self.text):
            return TRUNCATED
        if self.text[self.pos] != ")":
            self._fail(self.pos, "more than one object after dot")
        self.pos += 1
        return SList(tuple(items), tail)

    def _read_sequence(self, closer: str) -> Union[Tuple[Form, ...], _Truncated]:
        """Read forms up to `closer` (used by vectors, records and byte-code)."""
        text = self.text
        items: List[Form] = []
        while True:
            self._skip_whitespace()
            if self.pos >= len(text):
                return TRUNCATED
            ch = text[self.pos]
            if ch == closer:
                self.pos += 1
                return tuple(items)
            if ch in _CLOSERS:
                self._fail(self.pos, f"unexpected '{ch}'")
            if self._at_dot():
                self._fail(self.pos, "invalid dot")
            item = self._read_form()
            if item is TRUNCATED:
                return TRUNCATED
            items.append(item)

    def _read_token(self) -> Union[Tuple[str, bool], _Truncated]:
        """Read raw token text. Returns (name, had_escapes)."""
        text = self.text
        n = len(text)
        chars = []
        escaped = False
        while self.pos < n:
            ch = text[self.pos]
            if ch == "\\":
                if self.pos + 1 >= n:
                    return TRUNCATED
                chars.append(text[self.pos + 1])
                self.pos += 2
                escaped = True
                continue
            if _is_space(ch) or ch in _TOKEN_DELIMITERS:
                break
            chars.append(ch)
            self.pos += 1
        return "".join(chars), escaped

    def _read_atom(self) -> ReadResult:
        start = self.pos
        token = self._read_token()
        if token is TRUNCATED:
            return TRUNCATED
        name, escaped = token
        if not escaped:
            number = _parse_number(name)
            if number is not None:
                return number
        return self._record_symbol(Symbol(name), start, self.pos)

    def _read_string(self) -> ReadResult:
        text = self.text
        n = len(text)
        self.pos += 1
        chars = []
        while self.pos < n:
            ch = text[self.pos]
            if ch == '"':
                self.pos += 1
                return String("".join(chars))
            if ch != "\\":
                chars.append(ch)
                self.pos += 1
                continue
            if self.pos + 1 >= n:
                return TRUNCATED
            following = text[self.pos + 1]
            if following in "\n ":
                # Escaped newline or space: ignored inside strings.
                self.pos += 2
                continue
            code = self._read_char_escape()
            if code is TRUNCATED:
                return TRUNCATED
            base = code & 0x3FFFFF
            chars.append(chr(base) if base <= 0x10FFFF else "\ufffd")
        return TRUNCATED

    def _read_character(self) -> ReadResult:
        text = self.text
        start = self.pos
        self.pos += 1
        if self.pos >= len(text):
            return TRUNCATED
        if text[self.pos] == "\\":
            code = self._read_char_escape()
            if code is TRUNCATED:
                return TRUNCATED
        else:
            code = ord(text[self.pos])
            self.pos += 1
        if self.pos < len(text):
            following = text[self.pos]
            if not (_is_space(following) or following in "\"';()[]#?`,."):
                self._fail(start, "invalid character syntax")
        return Char(code)

    def _read_char_escape(self) -> Union[int, _Truncated]:
        """Decode one backslash escape at self.pos, as in ?\\C-a or "\\n"."""
        text = self.text
        n = len(text)
        start = self.pos
        self.pos += 1
        if self.pos >= n:
            return TRUNCATED
        ch = text[self.pos]
        self.pos += 1

        if ch in _MODIFIER_BITS and self.pos < n and text[self.pos] == "-":
            self.pos += 1
            base = self._read_char_body()
            if base is TRUNCATED:
                return TRUNCATED
            if ch == "C":
                return _control(base)
            return base | _MODIFIER_BITS[ch]
        if ch == "^":
            base = self._read_char_body()
            if base is TRUNCATED:
                return TRUNCATED
            return _control(base)
        if ch == "x":
            return self._read_code_digits(start, 16, None)
        if ch in "01234567":
            self.pos -= 1
            return self._read_code_digits(start, 8, 3)
        if ch == "u":
            return self._read_code_digits(start, 16, 4, exact=True)
        if ch == "U":
            return self._read_code_digits(start, 16, 8, exact=True)
        if ch == "N" and self.pos < n and text[self.pos] == "{":
            return self._read_named_char(start)
        return _SIMPLE_ESCAPES.get(ch, ord(ch))

    def _read_char_body(self) -> Union[int, _Truncated]:
        """The character after a modifier such as \\C- (itself possibly escaped)."""
        if self.pos >= len(self.text):
            return TRUNCATED
        if self.text[self.pos] == "\\":
            return self._read_char_escape()
        code = ord(self.text[self.pos])
        self.pos += 1
        return code

    def _read_code_digits(self, start: int, base: int, max_digits: Optional[int],
                          exact: bool = False) -> Union[int, _Truncated]:
        text = self.text
        digits_start = self.pos
        valid = "01234567" if base == 8 else "0123456789abcdefABCDEF"
        while self.pos < len(text) and text[self.pos] in valid:
            if max_digits is not None and self.pos - digits_start >= max_digits:
                break
            self.pos += 1
        digits = text[digits_start:self.pos]
        if exact and len(digits) != max_digits:
            if self.pos >= len(text):
                return TRUNCATED
            self._fail(start, "invalid unicode escape")
        if not digits:
            if self.pos >= len(text):
                return TRUNCATED
            self._fail(start, "invalid escape sequence")
        return int(digits, base)

    def _read_named_char(self, start: int) -> Union[int, _Truncated]:
        close = self.text.find("}", self.pos)
        if close == -1:
            return TRUNCATED
        name = self.text[self.pos + 1:close]
        self.pos = close + 1
        if name.upper().startswith("U+"):
            try:
                return int(name[2:], 16)
            except ValueError:
                self._fail(start, f"invalid character name {name!r}")
        try:
            return ord(unicodedata.lookup(" ".join(name.split())))
        except KeyError:
            self._fail(start, f"unknown character name {name!r}")

    def _read_dispatch(self) -> ReadResult:
        """Read # syntax."""
        text = self.text
        start = self.pos
        if start + 1 >= len(text):
            return TRUNCATED
        ch = text[start + 1]

        if ch == "'":
            return self._read_prefixed(FUNCTION, 2)
        if ch == "s" and text.startswith("#s(", start):
            self.pos += 3
            items = self._read_sequence(")")
            return items if items is TRUNCATED else Vector(items, kind="record")
        if ch == "[":
            self.pos += 2
            items = self._read_sequence("]")
            return items if items is TRUNCATED else Vector(items, kind="bytecode")
        if ch == "(":
            # #("text" START END PROPS ...): a string with text properties.
            self.pos += 2
            items = self._read_sequence(")")
            if items is TRUNCATED:
                return TRUNCATED
            if not items or not isinstance(items[0], String):
                self._fail(start, "invalid string property syntax")
            return items[0]
        if ch == "&":
            return self._read_bool_vector()
        if ch == ":":
            self.pos += 2
            token = self._read_token()
            if token is TRUNCATED:
                return TRUNCATED
            symbol = Symbol(token[0], interned=False)
            return self._record_symbol(symbol, start, self.pos)
        if ch == "#":
            self.pos += 2
            return self._record_symbol(Symbol(""), start, self.pos)
        if ch == "_":
            self.pos += 2
            token = self._read_token()
            if token is TRUNCATED:
                return TRUNCATED
            return self._record_symbol(Symbol(token[0]), start, self.pos)
        if ch in _RADIX_PREFIXES:
            self.pos += 2
            return self._read_radix_integer(start, _RADIX_PREFIXES[ch])
        if ch.isdigit():
            digits_end = start + 1
            while digits_end < len(text) and text[digits_end].isdigit():
                digits_end += 1
            if digits_end < len(text) and text[digits_end] in "rR":
                radix = int(text[start + 1:digits_end])
                if not 2 <= radix <= 36:
                    self._fail(start, f"invalid radix {radix}")
                self.pos = digits_end + 1
                return self._read_radix_integer(start, radix)
            if digits_end >= len(text):
                return TRUNCATED
            self._fail(start, "unsupported #N=/#N# read syntax")
        self._fail(start, f"invalid read syntax '#{ch}'")

    def _read_radix_integer(self, start: int, radix: int) -> ReadResult:
        token = self._read_token()
        if token is TRUNCATED:
            return TRUNCATED
        name = token[0]
        try:
            return int(name, radix)
        except ValueError:
            self._fail(start, f"invalid base-{radix} integer {name!r}")

    def _read_bool_vector(self) -> ReadResult:
        text = self.text
        start = self.pos
        digits_start = start + 2
        digits_end = digits_start
        while digits_end < len(text) and text[digits_end].isdigit():
            digits_end += 1
        if digits_end >= len(text):
            return TRUNCATED
        if digits_end == digits_start or text[digits_end] != '"':
            self._fail(start, "invalid bool-vector syntax")
        self.pos = digits_end
        data = self._read_string()
        if data is TRUNCATED:
            return TRUNCATED
        return BoolVector(int(text[digits_start:digits_end]), data.value)


def read_all(text: str, path: str = "<string>") -> List[PositionedForm]:
    """Read every complete top-level form in `text`."""
    reader = Reader(text, path)
    try:
        return reader.read_all()
    finally:
        reader.close()
