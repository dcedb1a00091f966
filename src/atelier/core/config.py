"""Configuration loading (TOML, env vars, .env)."""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from atelier.errors import ConfigError
from atelier.providers.registry import PROVIDERS
from atelier.types.config import RetryConfig, RunConfig

logger = logging.getLogger(__name__)

# Load .env from current directory (and parents), won't override existing env vars
load_dotenv()

_INT_KEYS = ("max_turns", "max_steps", "max_tokens")


def load_env_config() -> dict[str, Any]:
    """Load configuration from ``ATELIER_*`` environment variables."""
    config: dict[str, Any] = {}
    if provider := os.environ.get("ATELIER_PROVIDER"):
        config["provider"] = provider
    if model := os.environ.get("ATELIER_MODEL"):
        config["model"] = model
    if base_url := os.environ.get("ATELIER_BASE_URL"):
        config["base_url"] = base_url
    for key in _INT_KEYS:
        value = os.environ.get(f"ATELIER_{key.upper()}")
        if value:
            try:
                config[key] = int(value)
            except ValueError as exc:
                raise ConfigError(f"ATELIER_{key.upper()} must be an integer, got {value!r}") from exc
    return config


def config_paths(cwd: str | Path | None = None) -> list[Path]:
    """Candidate config files, highest priority first."""
    base = Path(cwd) if cwd else Path.cwd()
    return [base / ".atelier" / "config.toml", Path.home() / ".atelier" / "config.toml"]


def load_toml_config(cwd: str | Path | None = None) -> dict[str, Any]:
    """Load the first ``.atelier/config.toml`` found (project, then home)."""
    for path in config_paths(cwd):
        if not path.is_file():
            continue
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc
        logger.debug("Loaded config from %s", path)
        return data
    return {}


def resolve_api_key(
    provider: str,
    explicit_key: str | None = None,
    toml_config: dict[str, Any] | None = None,
) -> str | None:
    """Resolve an API key from an explicit value, the environment, or config."""
    if explicit_key:
        return explicit_key

    spec = PROVIDERS.get(provider)
    if spec is not None and spec.api_key_env:
        val = os.environ.get(spec.api_key_env)
        if val:
            return val

    data = toml_config if toml_config is not None else load_toml_config()
    key = data.get("providers", {}).get(provider, {}).get("api_key")
    return key if isinstance(key, str) and key else None


def build_run_config(
    cwd: str | Path | None = None,
    **overrides: Any,
) -> RunConfig:
    """Merge defaults, TOML config, environment and *overrides* into a RunConfig.

    Later sources win; ``None`` overrides are ignored.
    """
    toml_data = load_toml_config(cwd)
    merged: dict[str, Any] = {}
    merged.update({k: v for k, v in toml_data.get("defaults", {}).items() if v is not None})
    merged.update({k: v for k, v in toml_data.get("run", {}).items() if v is not None})
    merged.update(load_env_config())
    merged.update({k: v for k, v in overrides.items() if v is not None})

    provider = merged.get("provider", RunConfig().provider)
    if provider not in PROVIDERS:
        raise ConfigError(f"Unknown provider {provider!r}. Known providers: {sorted(PROVIDERS)}")

    provider_section = toml_data.get("providers", {}).get(provider, {})
    retry_section = toml_data.get("retry", {})
    try:
        retry = RetryConfig(**retry_section)
    except TypeError as exc:
        raise ConfigError(f"Invalid [retry] section: {exc}") from exc

    known = set(RunConfig.__dataclass_fields__)
    unknown = set(merged) - known
    if unknown:
        logger.warning("Ignoring unknown config keys: %s", ", ".join(sorted(unknown)))

    values = {k: v for k, v in merged.items() if k in known and k not in ("retry", "api_key")}
    values.setdefault("base_url", provider_section.get("base_url"))
    return RunConfig(
        **values,
        api_key=resolve_api_key(provider, merged.get("api_key"), toml_data),
        retry=retry,
    )
