"""Configuration management for lispref.

Loads environment variables and provides centralized config access.
"""
import os
from pathlib import Path
from typing import Optional, Set, Tuple
from dotenv import load_dotenv

from lispref.analyzer.corpus import DEFAULT_EXTENSIONS, EXCLUDED_DIRECTORIES
from lispref.analyzer.reference_finder import ReferenceFinder

__version__ = "1.0.0"

READ_ERROR_POLICIES = ReferenceFinder.ON_READ_ERROR_CHOICES


class Config:
    """Configuration loader with environment variable support."""

    def __init__(self, env_path: Optional[Path] = None):
        """Initialize config by loading .env file.

        Args:
            env_path: .env file to load (defaults to the project root's .env)
        """
        if env_path is None:
            project_root = Path(__file__).parent.parent
            env_path = project_root / ".env"
        load_dotenv(env_path)

        self._validate_required()

    def _validate_required(self):
        """Validate environment variables that have constrained values.

        Raises:
            ValueError: If LISPREF_PROGRESS_EVERY or LISPREF_ON_READ_ERROR is invalid
        """
        self.progress_every  # raises on bad values
        if self.on_read_error not in READ_ERROR_POLICIES:
            raise ValueError(
                f"LISPREF_ON_READ_ERROR must be one of {', '.join(READ_ERROR_POLICIES)}, "
                f"got {self.on_read_error!r}"
            )

    @property
    def progress_every(self) -> int:
        """Get progress reporting cadence in files.

        Returns:
            Positive number of files between progress notifications

        Raises:
            ValueError: If the variable is not a positive integer
        """
        raw = os.getenv("LISPREF_PROGRESS_EVERY", "10")
        try:
            value = int(raw)
        except ValueError:
            raise ValueError(f"LISPREF_PROGRESS_EVERY must be an integer, got {raw!r}") from None
        if value < 1:
            raise ValueError(f"LISPREF_PROGRESS_EVERY must be at least 1, got {value}")
        return value

    @property
    def on_read_error(self) -> str:
        """Get what to do when a file cannot be read.

        'abort' stops the whole search; 'skip' leaves the file out and continues.
        """
        return os.getenv("LISPREF_ON_READ_ERROR", "abort").strip().lower()

    @property
    def extensions(self) -> Tuple[str, ...]:
        """Get file extensions collected from directories.

        Returns:
            Tuple of suffixes, each starting with a dot
        """
        raw = os.getenv("LISPREF_EXTENSIONS")
        if not raw:
            return DEFAULT_EXTENSIONS
        extensions = []
        for item in raw.split(","):
            item = item.strip()
            if item:
                extensions.append(item if item.startswith(".") else f".{item}")
        return tuple(extensions) or DEFAULT_EXTENSIONS

    @property
    def excluded_dirs(self) -> Set[str]:
        """Get directory names skipped during discovery.

        LISPREF_EXCLUDED_DIRS adds to the built-in set rather than replacing it.
        """
        extra = os.getenv("LISPREF_EXCLUDED_DIRS", "")
        return EXCLUDED_DIRECTORIES | {name.strip() for name in extra.split(",") if name.strip()}


# Singleton instance
_config = None


def get_config() -> Config:
    """Get or create singleton Config instance.

    Returns:
        Config instance
    """
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config() -> None:
    """Forget the singleton so the next get_config() re-reads the environment."""
    global _config
    _config = None
