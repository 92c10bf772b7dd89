"""Corpus discovery: turn command-line paths into the files to search."""
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Set

from .forms import SourceFile

# Directories that never hold source worth searching
EXCLUDED_DIRECTORIES = {
    '.git', '.hg', '.svn',
    'elpa-archives',
    'eln-cache',
    'node_modules',
    '.cask',
    '.eldev',
    '__pycache__',
}

DEFAULT_EXTENSIONS = ('.el',)


def _is_excluded(path: Path, excluded_dirs: Set[str]) -> bool:
    return any(part in excluded_dirs for part in path.parts[:-1])


def discover_files(paths: Iterable[str | Path],
                   extensions: Sequence[str] = DEFAULT_EXTENSIONS,
                   excluded_dirs: Optional[Set[str]] = None) -> List[Path]:
    """Expand files and directories into a sorted, de-duplicated file list.

    Files named explicitly are always kept. Directories are searched
    recursively for the given extensions, skipping excluded directories.

    Args:
        paths: Files and/or directories
        extensions: File suffixes to collect from directories (e.g. '.el')
        excluded_dirs: Directory names to skip (defaults to EXCLUDED_DIRECTORIES)

    Returns:
        Resolved file paths in a stable order

    Raises:
        FileNotFoundError: If a given path does not exist
    """
    if excluded_dirs is None:
        excluded_dirs = EXCLUDED_DIRECTORIES

    found: Set[Path] = set()
    for raw_path in paths:
        path = Path(raw_path)
        if not path.exists():
            raise FileNotFoundError(f"No such file or directory: {path}")

        if path.is_file():
            found.add(path.resolve())
            continue

        for extension in extensions:
            for file_path in path.rglob(f"*{extension}"):
                relative = file_path.relative_to(path)
                if file_path.is_file() and not _is_excluded(relative, excluded_dirs):
                    found.add(file_path.resolve())

    return sorted(found)


def load_sources(paths: Iterable[str | Path]) -> List[SourceFile]:
    """Read files as UTF-8 text, skipping any that cannot be read or decoded."""
    sources = []
    for path in paths:
        try:
            text = Path(path).read_text(encoding='utf-8')
        except (UnicodeDecodeError, IOError):
            # Skip binary files or unreadable files
            continue
        sources.append(SourceFile(path=str(path), text=text))
    return sources
