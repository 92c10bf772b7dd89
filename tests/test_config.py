"""Tests for environment-driven configuration."""
import pytest

from lispref import config as config_module
from lispref.analyzer.corpus import DEFAULT_EXTENSIONS, EXCLUDED_DIRECTORIES
from lispref.analyzer.reference_finder import ReferenceFinder
from lispref.config import Config, get_config, reset_config


ENV_VARS = (
    "LISPREF_PROGRESS_EVERY",
    "LISPREF_ON_READ_ERROR",
    "LISPREF_EXTENSIONS",
    "LISPREF_EXCLUDED_DIRS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Start every test without lispref variables and without a .env file.

    Setting before deleting makes monkeypatch restore the variables even
    when load_dotenv wrote them during the test.
    """
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    reset_config()
    yield tmp_path / "missing.env"
    reset_config()


class TestDefaults:
    """Values used when nothing is configured."""

    def test_defaults(self, clean_env):
        config = Config(env_path=clean_env)
        assert config.progress_every == 10
        assert config.on_read_error == "abort"
        assert config.extensions == DEFAULT_EXTENSIONS
        assert config.excluded_dirs == EXCLUDED_DIRECTORIES


class TestEnvironment:
    """Values read from the environment."""

    def test_overrides(self, clean_env, monkeypatch):
        monkeypatch.setenv("LISPREF_PROGRESS_EVERY", "25")
        monkeypatch.setenv("LISPREF_ON_READ_ERROR", " Skip ")
        monkeypatch.setenv("LISPREF_EXTENSIONS", "el, .lisp,,")
        config = Config(env_path=clean_env)
        assert config.progress_every == 25
        assert config.on_read_error == "skip"
        assert config.extensions == (".el", ".lisp")

    def test_excluded_dirs_extend_builtin_set(self, clean_env, monkeypatch):
        monkeypatch.setenv("LISPREF_EXCLUDED_DIRS", "build, test-data")
        config = Config(env_path=clean_env)
        assert {"build", "test-data"} <= config.excluded_dirs
        assert EXCLUDED_DIRECTORIES <= config.excluded_dirs

    def test_dotenv_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("LISPREF_PROGRESS_EVERY=3\nLISPREF_ON_READ_ERROR=skip\n")
        config = Config(env_path=env_file)
        assert config.progress_every == 3
        assert config.on_read_error == "skip"

    def test_environment_wins_over_dotenv(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("LISPREF_PROGRESS_EVERY=3\n")
        monkeypatch.setenv("LISPREF_PROGRESS_EVERY", "7")
        assert Config(env_path=env_file).progress_every == 7


class TestValidation:
    """Bad values are rejected when the config is created."""

    @pytest.mark.parametrize("name,value", [
        ("LISPREF_PROGRESS_EVERY", "often"),
        ("LISPREF_PROGRESS_EVERY", "0"),
        ("LISPREF_PROGRESS_EVERY", "-5"),
        ("LISPREF_ON_READ_ERROR", "ignore"),
    ])
    def test_invalid_values(self, clean_env, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        with pytest.raises(ValueError, match=name):
            Config(env_path=clean_env)


class TestSingleton:
    """get_config() caches until reset_config()."""

    def test_get_config_returns_same_instance(self):
        assert get_config() is get_config()

    def test_reset_config_rereads_environment(self, monkeypatch):
        first = get_config()
        monkeypatch.setenv("LISPREF_PROGRESS_EVERY", "4")
        reset_config()
        second = get_config()
        assert second is not first
        assert second.progress_every == 4
        assert config_module._config is second

    def test_finder_from_config(self, clean_env, monkeypatch):
        monkeypatch.setenv("LISPREF_PROGRESS_EVERY", "2")
        monkeypatch.setenv("LISPREF_ON_READ_ERROR", "skip")
        finder = ReferenceFinder.from_config(Config(env_path=clean_env))
        assert finder.progress_every == 2
        assert finder.on_read_error == "skip"
