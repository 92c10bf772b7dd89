"""lispref CLI - find references to Lisp functions, macros and variables."""
import os
from contextlib import nullcontext
from pathlib import Path
from typing import Dict, List, Optional

import click
import typer
from rich.markup import escape
from rich.panel import Panel
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    MofNCompleteColumn,
    TimeElapsedColumn
)
from rich.syntax import Syntax
from rich.table import Table

from lispref.config import __version__, get_config
from lispref.analyzer.classifiers import SearchKind
from lispref.analyzer.corpus import discover_files, load_sources
from lispref.analyzer.forms import MatchResult, SourceFile
from lispref.analyzer.reader import MalformedReadError
from lispref.analyzer.reference_finder import ReferenceFinder
from lispref.utils.safe_console import SafeConsole
from lispref.utils.text import LineIndex, context_lines, snippet

app = typer.Typer(
    name="lispref",
    help="Find references to Lisp functions, macros, special forms and variables",
    add_completion=False
)
console = SafeConsole()


def _display_path(path: str) -> str:
    try:
        return str(Path(path).relative_to(Path.cwd()))
    except ValueError:
        return path


def _absolute_prefix(prefix: str) -> str:
    """Resolve a --prefix against the working directory, like discovered files.

    A prefix naming a directory ends in a separator so `lisp` does not also
    select `lisp2/`.
    """
    resolved = Path(prefix).resolve()
    if resolved.is_dir():
        return os.path.join(str(resolved), "")
    return str(resolved)


def _render_results(results: Dict[str, List[MatchResult]], sources: Dict[str, SourceFile],
                    context: int) -> int:
    """Print one table (or one panel per match with --context) per file.

    Returns:
        Total number of matches printed
    """
    total = 0
    for path, matches in results.items():
        text = sources[path].text
        index = LineIndex(text)
        display_path = _display_path(path)
        total += len(matches)

        if context > 0:
            for match in matches:
                line, column = index.position(match.span.start)
                lines = context_lines(index, match.span, context)
                code = "\n".join(line_text for _, line_text in lines)
                console.print(Panel(
                    Syntax(code, "emacs-lisp", line_numbers=True, start_line=lines[0][0],
                           highlight_lines={line}),
                    title=escape(f"{display_path}:{line}:{column}"),
                    title_align="left",
                ))
            continue

        table = Table(title=escape(display_path), title_justify="left")
        table.add_column("Line", style="green", justify="right")
        table.add_column("Col", style="green", justify="right")
        table.add_column("Match", style="cyan", no_wrap=False)
        for match in matches:
            line, column = index.position(match.span.start)
            table.add_row(str(line), str(column), escape(snippet(text, match.span)))
        console.print(table)
    return total


def _run_search(kind: SearchKind, symbol: str, paths: Optional[List[str]],
                prefix: Optional[str], skip_malformed: bool, show_progress: bool,
                context: int) -> None:
    """Shared implementation of every search command."""
    try:
        config = get_config()
    except ValueError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)

    try:
        files = discover_files(paths or ["."], config.extensions, config.excluded_dirs)
    except FileNotFoundError as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)

    with console.status("Reading files..."):
        sources = load_sources(files)
    path_prefix = _absolute_prefix(prefix) if prefix else None

    if show_progress:
        progress_ctx = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=console,
            transient=True
        )
    else:
        progress_ctx = nullcontext()

    with progress_ctx as progress:
        callback = None
        if show_progress:
            task = progress.add_task(f"Searching for {escape(symbol)}", total=len(sources))

            def callback(processed: int, total: int) -> None:
                progress.update(task, completed=processed, total=total)

        finder = ReferenceFinder(
            progress_every=config.progress_every,
            on_read_error="skip" if skip_malformed else config.on_read_error,
            progress_callback=callback,
        )
        try:
            results = finder.search(symbol, sources, kind, path_prefix=path_prefix)
        except MalformedReadError as e:
            console.print(
                f"[bold red]search aborted:[/bold red] malformed input in "
                f"{escape(_display_path(e.path))} at offset {e.offset}"
            )
            console.print(f"[dim]{escape(e.reason)}[/dim]")
            raise typer.Exit(1)

    by_path = {source.path: source for source in sources}
    match_count = _render_results(results, by_path, context)

    for skipped in finder.skipped:
        console.print(
            f"[yellow]⚠ Skipped[/yellow] {escape(_display_path(skipped.path))} "
            f"(offset {skipped.error.offset}: {escape(skipped.error.reason)})"
        )

    if match_count:
        console.print(
            f"\n[bold green]✓ Found {match_count} {kind.value} reference"
            f"{'s' if match_count != 1 else ''} to {escape(symbol)} in {len(results)} "
            f"file{'s' if len(results) != 1 else ''}[/bold green] "
            f"[dim](searched {len(sources)})[/dim]"
        )
    else:
        console.print(
            f"[bold yellow]No {kind.value} references to {escape(symbol)} found[/bold yellow] "
            f"[dim](searched {len(sources)})[/dim]"
        )


@app.command()
def function(
    symbol: str = typer.Argument(..., help="Function name to search for"),
    paths: List[str] = typer.Argument(None, help="Files or directories to search (default: current directory)"),
    prefix: str = typer.Option(None, "--prefix", "-p", help="Only search files whose path starts with this prefix"),
    skip_malformed: bool = typer.Option(False, "--skip-malformed", help="Skip unreadable files instead of aborting"),
    no_progress: bool = typer.Option(False, "--no-progress", help="Disable the progress bar"),
    context: int = typer.Option(0, "--context", "-c", min=0, help="Lines of context to show around each match"),
):
    """Find calls to a function, including (funcall 'NAME) and #'NAME."""
    _run_search(SearchKind.FUNCTION, symbol, paths, prefix, skip_malformed, not no_progress, context)


@app.command()
def macro(
    symbol: str = typer.Argument(..., help="Macro name to search for"),
    paths: List[str] = typer.Argument(None, help="Files or directories to search (default: current directory)"),
    prefix: str = typer.Option(None, "--prefix", "-p", help="Only search files whose path starts with this prefix"),
    skip_malformed: bool = typer.Option(False, "--skip-malformed", help="Skip unreadable files instead of aborting"),
    no_progress: bool = typer.Option(False, "--no-progress", help="Disable the progress bar"),
    context: int = typer.Option(0, "--context", "-c", min=0, help="Lines of context to show around each match"),
):
    """Find uses of a macro."""
    _run_search(SearchKind.MACRO, symbol, paths, prefix, skip_malformed, not no_progress, context)


@app.command()
def special(
    symbol: str = typer.Argument(..., help="Special form name to search for (e.g. if, let, setq)"),
    paths: List[str] = typer.Argument(None, help="Files or directories to search (default: current directory)"),
    prefix: str = typer.Option(None, "--prefix", "-p", help="Only search files whose path starts with this prefix"),
    skip_malformed: bool = typer.Option(False, "--skip-malformed", help="Skip unreadable files instead of aborting"),
    no_progress: bool = typer.Option(False, "--no-progress", help="Disable the progress bar"),
    context: int = typer.Option(0, "--context", "-c", min=0, help="Lines of context to show around each match"),
):
    """Find uses of a special form."""
    _run_search(SearchKind.SPECIAL, symbol, paths, prefix, skip_malformed, not no_progress, context)


@app.command()
def variable(
    symbol: str = typer.Argument(..., help="Variable name to search for"),
    paths: List[str] = typer.Argument(None, help="Files or directories to search (default: current directory)"),
    prefix: str = typer.Option(None, "--prefix", "-p", help="Only search files whose path starts with this prefix"),
    skip_malformed: bool = typer.Option(False, "--skip-malformed", help="Skip unreadable files instead of aborting"),
    no_progress: bool = typer.Option(False, "--no-progress", help="Disable the progress bar"),
    context: int = typer.Option(0, "--context", "-c", min=0, help="Lines of context to show around each match"),
):
    """Find uses of a variable, including let bindings of it."""
    _run_search(SearchKind.VARIABLE, symbol, paths, prefix, skip_malformed, not no_progress, context)


@app.command()
def symbol(
    symbol: str = typer.Argument(..., help="Symbol to search for"),
    paths: List[str] = typer.Argument(None, help="Files or directories to search (default: current directory)"),
    prefix: str = typer.Option(None, "--prefix", "-p", help="Only search files whose path starts with this prefix"),
    skip_malformed: bool = typer.Option(False, "--skip-malformed", help="Skip unreadable files instead of aborting"),
    no_progress: bool = typer.Option(False, "--no-progress", help="Disable the progress bar"),
    context: int = typer.Option(0, "--context", "-c", min=0, help="Lines of context to show around each match"),
):
    """Find every occurrence of a symbol, whatever its role."""
    _run_search(SearchKind.SYMBOL, symbol, paths, prefix, skip_malformed, not no_progress, context)


@app.command()
def search(
    symbol: str = typer.Argument(..., help="Symbol to search for"),
    paths: List[str] = typer.Argument(None, help="Files or directories to search (default: current directory)"),
    kind: str = typer.Option(None, "--kind", "-k", help="function, macro, special, variable or symbol"),
    prefix: str = typer.Option(None, "--prefix", "-p", help="Only search files whose path starts with this prefix"),
    skip_malformed: bool = typer.Option(False, "--skip-malformed", help="Skip unreadable files instead of aborting"),
    no_progress: bool = typer.Option(False, "--no-progress", help="Disable the progress bar"),
    context: int = typer.Option(0, "--context", "-c", min=0, help="Lines of context to show around each match"),
):
    """Find references of any kind, asking for the kind if --kind is not given."""
    kinds = [choice.value for choice in SearchKind]

    if kind is None:
        kind = typer.prompt(
            "What kind of reference?",
            type=click.Choice(kinds, case_sensitive=False),
            default=SearchKind.FUNCTION.value
        )

    kind = kind.lower()
    if kind not in kinds:
        console.print(f"[bold red]Error:[/bold red] Invalid kind '{escape(kind)}'. Use one of: {', '.join(kinds)}.")
        raise typer.Exit(1)

    _run_search(SearchKind(kind), symbol, paths, prefix, skip_malformed, not no_progress, context)


def _version_callback(value: bool):
    if value:
        console.print(f"lispref {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True,
                                 help="Show the version and exit"),
):
    """lispref - find references to Lisp symbols across a source tree."""
    pass


if __name__ == "__main__":
    app()
