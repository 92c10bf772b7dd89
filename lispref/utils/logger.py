"""Terminal-safe output with ASCII fallbacks for non-UTF-8 consoles.

Search reports use a handful of Unicode glyphs (a check mark, a warning sign
and an ellipsis). On terminals that cannot encode them those glyphs are
swapped for ASCII stand-ins instead of crashing the print.
"""
import sys
import locale


# Unicode glyph to ASCII replacement
ICON_MAP = {
    # Summary line
    '✓': '[OK]',
    # Skipped-file lines
    '⚠': '[WARN]',
    # Shortened snippets
    '…': '...',
}

UTF8_ENCODINGS = ('utf-8', 'utf8', 'utf_8')


def detect_terminal_encoding() -> str:
    """Detect the terminal's encoding.

    Returns:
        str: Lower-cased encoding name ('utf-8', 'cp1252', 'ascii', ...)
    """
    encoding = getattr(sys.stdout, 'encoding', None)
    if encoding:
        return encoding.lower()

    try:
        encoding = locale.getpreferredencoding()
    except (ValueError, LookupError):
        encoding = None

    return encoding.lower() if encoding else 'ascii'


def is_utf8_capable() -> bool:
    """Check whether the terminal can print UTF-8 glyphs."""
    return detect_terminal_encoding() in UTF8_ENCODINGS


def sanitize_for_terminal(text: str, force: bool = False) -> str:
    """Replace glyphs with ASCII equivalents when the terminal needs it.

    The replacements are upper-case in brackets, which Rich does not treat
    as markup tags, so marked-up text can be sanitized as is.

    Args:
        text: Text that may contain glyphs from ICON_MAP
        force: Sanitize even on a UTF-8 terminal

    Returns:
        str: Text safe for the current terminal
    """
    if not force and is_utf8_capable():
        return text

    for glyph, replacement in ICON_MAP.items():
        text = text.replace(glyph, replacement)
    return text
