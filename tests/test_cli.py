"""Tests for the lispref command line."""
import pytest
from typer.testing import CliRunner

from lispref.config import __version__, reset_config
from lispref.main import app


runner = CliRunner()


@pytest.fixture(autouse=True)
def workspace(tmp_path, monkeypatch):
    """Run each command from a scratch directory with default settings."""
    for name in ("LISPREF_PROGRESS_EVERY", "LISPREF_ON_READ_ERROR",
                 "LISPREF_EXTENSIONS", "LISPREF_EXCLUDED_DIRS"):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    reset_config()
    yield tmp_path
    reset_config()


def write(directory, name, text):
    path = directory / name
    path.write_text(text, encoding='utf-8')
    return path


class TestSearchCommands:
    """Each search command end to end."""

    def test_function_search(self, workspace):
        write(workspace, "a.el", "(defun foo (x) x)\n(foo 1)\n")
        result = runner.invoke(app, ["function", "foo", "a.el", "--no-progress"])
        assert result.exit_code == 0, result.output
        assert "(foo 1)" in result.output
        assert "Found 1 function reference to foo in 1 file" in result.output

    def test_default_path_is_current_directory(self, workspace):
        (workspace / "lisp").mkdir()
        write(workspace / "lisp", "a.el", "(foo)\n")
        write(workspace / "lisp", "b.el", "(foo)\n")
        result = runner.invoke(app, ["function", "foo", "--no-progress"])
        assert result.exit_code == 0, result.output
        assert "in 2 files" in result.output
        assert "(searched 2)" in result.output

    def test_no_matches_is_not_an_error(self, workspace):
        write(workspace, "a.el", "(bar)\n")
        result = runner.invoke(app, ["macro", "foo", "a.el", "--no-progress"])
        assert result.exit_code == 0, result.output
        assert "No macro references to foo found" in result.output

    def test_variable_search(self, workspace):
        write(workspace, "a.el", "(let (x) (setq x 1) x)\n")
        result = runner.invoke(app, ["variable", "x", "a.el", "--no-progress"])
        assert result.exit_code == 0, result.output
        assert "Found 3 variable references" in result.output

    def test_symbol_search(self, workspace):
        write(workspace, "a.el", "(foo (bar foo) \"foo\")\n")
        result = runner.invoke(app, ["symbol", "foo", "a.el", "--no-progress"])
        assert result.exit_code == 0, result.output
        assert "Found 2 symbol references" in result.output

    def test_special_form_search_with_progress(self, workspace):
        write(workspace, "a.el", "(if a (progn b) c)\n")
        result = runner.invoke(app, ["special", "progn", "a.el"])
        assert result.exit_code == 0, result.output
        assert "Found 1 special reference" in result.output

    def test_prefix_option(self, workspace):
        (workspace / "keep").mkdir()
        (workspace / "drop").mkdir()
        keep = write(workspace / "keep", "a.el", "(foo)\n")
        write(workspace / "drop", "a.el", "(foo)\n")
        prefix = str(keep.resolve().parent)
        result = runner.invoke(app, ["function", "foo", "--prefix", prefix, "--no-progress"])
        assert result.exit_code == 0, result.output
        assert "in 1 file" in result.output
        assert "(searched 2)" in result.output

    def test_relative_prefix(self, workspace):
        (workspace / "lisp").mkdir()
        (workspace / "lisp2").mkdir()
        write(workspace / "lisp", "a.el", "(foo 1)\n")
        write(workspace / "lisp2", "b.el", "(foo 2)\n")
        result = runner.invoke(app, ["function", "foo", ".", "--prefix", "lisp", "--no-progress"])
        assert result.exit_code == 0, result.output
        assert "(foo 1)" in result.output
        assert "(foo 2)" not in result.output
        assert "Found 1 function reference to foo in 1 file" in result.output

    def test_relative_prefix_of_file_names(self, workspace):
        (workspace / "lisp").mkdir()
        write(workspace / "lisp", "core.el", "(foo 1)\n")
        write(workspace / "lisp", "extra.el", "(foo 2)\n")
        result = runner.invoke(app, ["function", "foo", "--prefix", "lisp/co", "--no-progress"])
        assert result.exit_code == 0, result.output
        assert "(foo 1)" in result.output
        assert "(foo 2)" not in result.output

    def test_context_option(self, workspace):
        write(workspace, "a.el", "(defun f ()\n  (foo 1))\n")
        result = runner.invoke(app, ["function", "foo", "a.el", "--context", "1", "--no-progress"])
        assert result.exit_code == 0, result.output
        assert "a.el:2:3" in result.output
        assert "defun" in result.output


    def test_search_with_kind(self, workspace):
        write(workspace, "a.el", "(let (x) (setq x 1) x)\n")
        result = runner.invoke(app, ["search", "x", "a.el", "--kind", "VARIABLE", "--no-progress"])
        assert result.exit_code == 0, result.output
        assert "Found 3 variable references" in result.output

    def test_search_prompts_for_kind(self, workspace):
        write(workspace, "a.el", "(defmacro m () nil)\n(m)\n")
        result = runner.invoke(app, ["search", "m", "a.el", "--no-progress"], input="macro\n")
        assert result.exit_code == 0, result.output
        assert "Found 1 macro reference" in result.output

    def test_search_rejects_unknown_kind(self, workspace):
        write(workspace, "a.el", "(foo)\n")
        result = runner.invoke(app, ["search", "foo", "a.el", "--kind", "constant"])
        assert result.exit_code == 1
        assert "Invalid kind" in result.output


class TestErrors:
    """Malformed input and bad arguments."""

    def test_malformed_file_aborts(self, workspace):
        write(workspace, "bad.el", "(foo))\n")
        write(workspace, "good.el", "(foo)\n")
        result = runner.invoke(app, ["function", "foo", "--no-progress"])
        assert result.exit_code == 1
        assert "search aborted" in result.output
        assert "bad.el at offset 5" in result.output

    def test_skip_malformed(self, workspace):
        write(workspace, "bad.el", "(foo))\n")
        write(workspace, "good.el", "(foo)\n")
        result = runner.invoke(app, ["function", "foo", "--skip-malformed", "--no-progress"])
        assert result.exit_code == 0, result.output
        assert "Skipped" in result.output
        assert "bad.el" in result.output
        assert "Found 1 function reference" in result.output

    def test_skip_from_environment(self, workspace, monkeypatch):
        write(workspace, "bad.el", "(foo))\n")
        monkeypatch.setenv("LISPREF_ON_READ_ERROR", "skip")
        result = runner.invoke(app, ["function", "foo", "--no-progress"])
        assert result.exit_code == 0, result.output
        assert "Skipped" in result.output

    def test_bad_configuration(self, workspace, monkeypatch):
        monkeypatch.setenv("LISPREF_PROGRESS_EVERY", "never")
        result = runner.invoke(app, ["function", "foo", "--no-progress"])
        assert result.exit_code == 1
        assert "Configuration error" in result.output

    def test_missing_path(self, workspace):
        result = runner.invoke(app, ["function", "foo", "missing.el", "--no-progress"])
        assert result.exit_code == 1
        assert "missing.el" in result.output


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output
