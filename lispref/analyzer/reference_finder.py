"""Reference finder: locates references to one symbol across a corpus of Lisp files."""
from contextlib import closing
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Union

from .child_spans import ChildSpanIndexer
from .classifiers import SearchKind, classifier_for
from .forms import MatchResult, PositionedForm, SourceFile, Symbol
from .reader import MalformedReadError, Reader
from .walker import walk

ProgressCallback = Callable[[int, int], None]


@dataclass
class SkippedFile:
    """A file left out of a search because it could not be read."""
    path: str
    error: MalformedReadError


class ReferenceFinder:
    """Searches files one at a time for references to a symbol."""

    ON_READ_ERROR_CHOICES = ("abort", "skip")

    def __init__(self, progress_every: int = 10, on_read_error: str = "abort",
                 progress_callback: Optional[ProgressCallback] = None):
        """Initialize the finder.

        Args:
            progress_every: Report progress after every this many files
            on_read_error: 'abort' to stop the whole search on a malformed
                file, 'skip' to record the file in `skipped` and carry on
            progress_callback: Called with (files_processed, total_files)

        Raises:
            ValueError: If progress_every is not positive or on_read_error is unknown
        """
        if progress_every < 1:
            raise ValueError(f"progress_every must be at least 1, got {progress_every}")
        if on_read_error not in self.ON_READ_ERROR_CHOICES:
            raise ValueError(
                f"on_read_error must be one of {', '.join(self.ON_READ_ERROR_CHOICES)}, "
                f"got {on_read_error!r}"
            )
        self.progress_every = progress_every
        self.on_read_error = on_read_error
        self.progress_callback = progress_callback
        self.skipped: List[SkippedFile] = []

    @classmethod
    def from_config(cls, config, progress_callback: Optional[ProgressCallback] = None) -> "ReferenceFinder":
        """Build a finder from a lispref Config."""
        return cls(
            progress_every=config.progress_every,
            on_read_error=config.on_read_error,
            progress_callback=progress_callback,
        )

    def search(self, target: Union[str, Symbol], files: Sequence[SourceFile],
               kind: SearchKind = SearchKind.FUNCTION,
               path_prefix: Optional[str] = None) -> Dict[str, List[MatchResult]]:
        """Search every file for references to `target`.

        Files are processed in the order given. Files without a match are
        left out of the result but still count towards progress.

        Args:
            target: Symbol (or symbol name) to look for
            files: Files to search, in order
            kind: Kind of reference to look for
            path_prefix: Only search files whose path starts with this

        Returns:
            Mapping of file path to its matches, in input order

        Raises:
            MalformedReadError: If a file cannot be read and on_read_error is 'abort'
        """
        target = _as_symbol(target)
        kind = SearchKind(kind)
        if path_prefix:
            files = [source for source in files if str(source.path).startswith(path_prefix)]

        self.skipped = []
        results: Dict[str, List[MatchResult]] = {}
        total = len(files)

        for processed, source in enumerate(files, start=1):
            try:
                matches = self.search_file(target, source, kind)
            except MalformedReadError as e:
                if self.on_read_error == "abort":
                    raise
                self.skipped.append(SkippedFile(path=source.path, error=e))
                matches = []

            if matches:
                results[source.path] = matches

            if processed % self.progress_every == 0 and processed != total:
                self._notify(processed, total)

        self._notify(total, total)
        return results

    def search_file(self, target: Union[str, Symbol], source: SourceFile,
                    kind: SearchKind = SearchKind.FUNCTION) -> List[MatchResult]:
        """Matches for `target` in a single file, in source order."""
        target = _as_symbol(target)
        kind = SearchKind(kind)

        with closing(Reader(source.text, source.path)) as reader:
            forms = reader.read_all()

        candidates = [positioned for positioned in forms if positioned.mentions(target)]
        if kind == SearchKind.SYMBOL:
            return _symbol_matches(target, candidates)

        classifier = classifier_for(kind)
        matches: List[MatchResult] = []
        with closing(ChildSpanIndexer(source.text, source.path)) as indexer:
            for positioned in candidates:
                matches.extend(walk(positioned.form, positioned.span, target, classifier, indexer))
        return matches

    def _notify(self, processed: int, total: int) -> None:
        if self.progress_callback is not None:
            self.progress_callback(processed, total)


def _as_symbol(target: Union[str, Symbol]) -> Symbol:
    return target if isinstance(target, Symbol) else Symbol(target)


def _symbol_matches(target: Symbol, forms: Sequence[PositionedForm]) -> List[MatchResult]:
    """Every token of `target`, wherever it appears."""
    return [
        MatchResult(span, target)
        for positioned in forms
        for span in positioned.absolute_spans(target)
    ]


def search(target: Union[str, Symbol], files: Sequence[SourceFile],
           kind: SearchKind = SearchKind.FUNCTION,
           progress_callback: Optional[ProgressCallback] = None,
           progress_every: int = 10, on_read_error: str = "abort",
           path_prefix: Optional[str] = None) -> Dict[str, List[MatchResult]]:
    """Convenience wrapper around ReferenceFinder.search."""
    finder = ReferenceFinder(
        progress_every=progress_every,
        on_read_error=on_read_error,
        progress_callback=progress_callback,
    )
    return finder.search(target, files, kind, path_prefix=path_prefix)
