"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from atelier.core.config import build_run_config, load_env_config, load_toml_config, resolve_api_key
from atelier.errors import ConfigError

_ENV_VARS = (
    "ATELIER_PROVIDER",
    "ATELIER_MODEL",
    "ATELIER_BASE_URL",
    "ATELIER_MAX_TURNS",
    "ATELIER_MAX_STEPS",
    "ATELIER_MAX_TOKENS",
    "ANTHROPIC_API_KEY",
    "OPENROUTER_API_KEY",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path: Path) -> Path:
    """Isolate from the caller's environment and home config; returns the project dir."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    project = tmp_path / "project"
    project.mkdir()
    return project


def _write_config(project: Path, text: str) -> None:
    config_dir = project / ".atelier"
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "config.toml").write_text(text)


class TestBuildRunConfig:
    def test_defaults(self, clean_env: Path):
        config = build_run_config(cwd=clean_env)
        assert config.provider == "openrouter"
        assert config.max_turns == 100
        assert config.max_steps == 50
        assert config.api_key is None

    def test_toml_values(self, clean_env: Path):
        _write_config(clean_env, """
[defaults]
provider = "anthropic"
max_turns = 20

[providers.anthropic]
api_key = "toml-key"
base_url = "https://proxy.example"

[retry]
max_attempts = 5
""")
        config = build_run_config(cwd=clean_env)
        assert config.provider == "anthropic"
        assert config.max_turns == 20
        assert config.api_key == "toml-key"
        assert config.base_url == "https://proxy.example"
        assert config.retry.max_attempts == 5

    def test_precedence(self, clean_env: Path, monkeypatch):
        _write_config(clean_env, "[defaults]\nmax_turns = 20\nmax_steps = 9\n")
        monkeypatch.setenv("ATELIER_MAX_TURNS", "7")
        config = build_run_config(cwd=clean_env, max_steps=3, max_turns=None)
        assert config.max_turns == 7
        assert config.max_steps == 3

    def test_explicit_key_beats_environment(self, clean_env: Path, monkeypatch):
        monkeypatch.setenv("OPENROUTER_API_KEY", "env-key")
        assert build_run_config(cwd=clean_env).api_key == "env-key"
        assert build_run_config(cwd=clean_env, api_key="cli-key").api_key == "cli-key"

    def test_unknown_provider(self, clean_env: Path):
        with pytest.raises(ConfigError, match="Unknown provider"):
            build_run_config(cwd=clean_env, provider="nope")

    def test_bad_retry_section(self, clean_env: Path):
        _write_config(clean_env, "[retry]\nattempts = 2\n")
        with pytest.raises(ConfigError, match=r"\[retry\]"):
            build_run_config(cwd=clean_env)

    def test_unknown_keys_ignored_with_warning(self, clean_env: Path, caplog):
        _write_config(clean_env, "[run]\ncolour = \"blue\"\nchat_mode = true\n")
        config = build_run_config(cwd=clean_env)
        assert config.chat_mode is True
        assert "colour" in caplog.text


class TestSources:
    def test_env_config(self, clean_env: Path, monkeypatch):
        monkeypatch.setenv("ATELIER_PROVIDER", "groq")
        monkeypatch.setenv("ATELIER_MAX_TOKENS", "2048")
        assert load_env_config() == {"provider": "groq", "max_tokens": 2048}

    def test_env_config_rejects_non_integer(self, clean_env: Path, monkeypatch):
        monkeypatch.setenv("ATELIER_MAX_STEPS", "many")
        with pytest.raises(ConfigError, match="ATELIER_MAX_STEPS"):
            load_env_config()

    def test_invalid_toml(self, clean_env: Path):
        _write_config(clean_env, "[defaults\nprovider = ")
        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_toml_config(clean_env)

    def test_project_config_before_home(self, clean_env: Path, tmp_path: Path):
        _write_config(tmp_path / "home", "[defaults]\nmodel = \"home\"\n")
        assert load_toml_config(clean_env) == {"defaults": {"model": "home"}}
        _write_config(clean_env, "[defaults]\nmodel = \"project\"\n")
        assert load_toml_config(clean_env) == {"defaults": {"model": "project"}}

    def test_resolve_api_key_order(self, clean_env: Path, monkeypatch):
        toml = {"providers": {"anthropic": {"api_key": "from-toml"}}}
        assert resolve_api_key("anthropic", None, toml) == "from-toml"
        monkeypatch.setenv("ANTHROPIC_API_KEY", "from-env")
        assert resolve_api_key("anthropic", None, toml) == "from-env"
        assert resolve_api_key("anthropic", "explicit", toml) == "explicit"

    def test_local_provider_has_no_key(self, clean_env: Path):
        assert resolve_api_key("ollama", None, {}) is None
