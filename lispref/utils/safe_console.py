"""Terminal-safe Console wrapper for Rich.

Wraps Rich's Console so glyphs in search reports degrade to ASCII on
terminals that cannot encode UTF-8.
"""
from rich.console import Console
from typing import Any
from .logger import sanitize_for_terminal, is_utf8_capable


class SafeConsole(Console):
    """Console that sanitizes string output on non-UTF-8 terminals."""

    def __init__(self, *args, sanitize: bool = None, **kwargs):
        """Initialize SafeConsole.

        Args:
            sanitize: Force sanitization on or off (defaults to terminal detection)

        All other arguments are passed through to Rich's Console.
        """
        self._needs_sanitization = (not is_utf8_capable()) if sanitize is None else sanitize

        if self._needs_sanitization:
            kwargs.setdefault('legacy_windows', True)

        super().__init__(*args, **kwargs)

    def print(self, *objects: Any, **kwargs) -> None:
        """Print with glyph sanitization (same arguments as Rich Console.print)."""
        if self._needs_sanitization:
            objects = tuple(
                sanitize_for_terminal(obj, force=True) if isinstance(obj, str) else obj
                for obj in objects
            )
        super().print(*objects, **kwargs)

    def status(self, *args, **kwargs):
        """Status spinner that stays ASCII when sanitizing."""
        if self._needs_sanitization:
            kwargs['spinner'] = 'line'  # - \ | /

        return super().status(*args, **kwargs)
