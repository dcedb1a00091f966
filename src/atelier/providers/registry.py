"""Model catalogue, provider endpoints and the provider factory."""

from __future__ import annotations

import logging
import os

from atelier.errors import ConfigError
from atelier.types.providers import ModelInfo, ProviderAdapter, ProviderSpec

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Provider endpoints
# ---------------------------------------------------------------------------

PROVIDERS: dict[str, ProviderSpec] = {
    "openrouter": ProviderSpec(
        id="openrouter",
        display_name="OpenRouter",
        base_url="https://openrouter.ai/api/v1",
        api_key_env="OPENROUTER_API_KEY",
        default_model="deepseek/deepseek-chat",
    ),
    "openai": ProviderSpec(
        id="openai",
        display_name="OpenAI",
        base_url=None,
        api_key_env="OPENAI_API_KEY",
        default_model="gpt-4o-mini",
    ),
    "anthropic": ProviderSpec(
        id="anthropic",
        display_name="Anthropic",
        base_url=None,
        api_key_env="ANTHROPIC_API_KEY",
        default_model="claude-sonnet-4-5",
        adapter="anthropic",
    ),
    "groq": ProviderSpec(
        id="groq",
        display_name="Groq",
        base_url="https://api.groq.com/openai/v1",
        api_key_env="GROQ_API_KEY",
        default_model="llama-3.3-70b-versatile",
    ),
    "ollama": ProviderSpec(
        id="ollama",
        display_name="Ollama",
        base_url="http://localhost:11434/v1",
        api_key_env=None,
        default_model="qwen2.5-coder",
        is_local=True,
    ),
    "lmstudio": ProviderSpec(
        id="lmstudio",
        display_name="LM Studio",
        base_url="http://localhost:1234/v1",
        api_key_env=None,
        default_model="local-model",
        is_local=True,
    ),
}

# ---------------------------------------------------------------------------
# Model catalogue
# ---------------------------------------------------------------------------

MODELS: dict[str, ModelInfo] = {
    # -- OpenRouter ----------------------------------------------------------
    "deepseek/deepseek-chat": ModelInfo(
        id="deepseek/deepseek-chat",
        provider="openrouter",
        display_name="DeepSeek V3",
        context_window=64_000,
        max_output_tokens=8_192,
        input_cost_per_mtok=0.14,
        output_cost_per_mtok=0.28,
        aliases=("deepseek",),
    ),
    "deepseek/deepseek-reasoner": ModelInfo(
        id="deepseek/deepseek-reasoner",
        provider="openrouter",
        display_name="DeepSeek R1",
        context_window=64_000,
        max_output_tokens=8_192,
        input_cost_per_mtok=0.55,
        output_cost_per_mtok=2.19,
        reasoning_cost_per_mtok=5.50,
        aliases=("deepseek-r1",),
    ),
    "anthropic/claude-3.5-sonnet": ModelInfo(
        id="anthropic/claude-3.5-sonnet",
        provider="openrouter",
        display_name="Claude 3.5 Sonnet (OpenRouter)",
        context_window=200_000,
        max_output_tokens=8_192,
        input_cost_per_mtok=3.00,
        output_cost_per_mtok=15.00,
    ),
    "openai/gpt-4o-mini": ModelInfo(
        id="openai/gpt-4o-mini",
        provider="openrouter",
        display_name="GPT-4o mini (OpenRouter)",
        context_window=128_000,
        max_output_tokens=16_384,
        input_cost_per_mtok=0.15,
        output_cost_per_mtok=0.60,
    ),
    "qwen/qwen-2.5-72b-instruct": ModelInfo(
        id="qwen/qwen-2.5-72b-instruct",
        provider="openrouter",
        display_name="Qwen 2.5 72B",
        context_window=32_768,
        max_output_tokens=8_192,
        input_cost_per_mtok=0.35,
        output_cost_per_mtok=0.40,
    ),
    # -- OpenAI ----------------------------------------------------------------
    "gpt-4o": ModelInfo(
        id="gpt-4o",
        provider="openai",
        display_name="GPT-4o",
        context_window=128_000,
        max_output_tokens=16_384,
        input_cost_per_mtok=2.50,
        output_cost_per_mtok=10.00,
        aliases=("4o",),
    ),
    "gpt-4o-mini": ModelInfo(
        id="gpt-4o-mini",
        provider="openai",
        display_name="GPT-4o mini",
        context_window=128_000,
        max_output_tokens=16_384,
        input_cost_per_mtok=0.15,
        output_cost_per_mtok=0.60,
        aliases=("4o-mini",),
    ),
    "o3-mini": ModelInfo(
        id="o3-mini",
        provider="openai",
        display_name="o3-mini",
        context_window=200_000,
        max_output_tokens=100_000,
        input_cost_per_mtok=1.10,
        output_cost_per_mtok=4.40,
        reasoning_cost_per_mtok=4.40,
    ),
    # -- Anthropic -------------------------------------------------------------
    "claude-sonnet-4-5": ModelInfo(
        id="claude-sonnet-4-5",
        provider="anthropic",
        display_name="Claude Sonnet 4.5",
        context_window=200_000,
        max_output_tokens=16_384,
        input_cost_per_mtok=3.00,
        output_cost_per_mtok=15.00,
        aliases=("sonnet",),
    ),
    "claude-haiku-4-5": ModelInfo(
        id="claude-haiku-4-5",
        provider="anthropic",
        display_name="Claude Haiku 4.5",
        context_window=200_000,
        max_output_tokens=8_192,
        input_cost_per_mtok=1.00,
        output_cost_per_mtok=5.00,
        aliases=("haiku",),
    ),
    # -- Groq ------------------------------------------------------------------
    "llama-3.3-70b-versatile": ModelInfo(
        id="llama-3.3-70b-versatile",
        provider="groq",
        display_name="Llama 3.3 70B (Groq)",
        context_window=128_000,
        max_output_tokens=32_768,
        input_cost_per_mtok=0.59,
        output_cost_per_mtok=0.79,
    ),
    # -- Local -----------------------------------------------------------------
    "qwen2.5-coder": ModelInfo(
        id="qwen2.5-coder",
        provider="ollama",
        display_name="Qwen 2.5 Coder (Ollama)",
        context_window=32_768,
        max_output_tokens=8_192,
    ),
    "local-model": ModelInfo(
        id="local-model",
        provider="lmstudio",
        display_name="LM Studio loaded model",
        context_window=32_768,
        max_output_tokens=8_192,
    ),
}

# ---------------------------------------------------------------------------
# Alias map — built automatically from ModelInfo.aliases
# ---------------------------------------------------------------------------

ALIASES: dict[str, str] = {}
for _model_id, _info in MODELS.items():
    for _alias in _info.aliases:
        ALIASES[_alias] = _model_id


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def resolve_model(name: str) -> ModelInfo:
    """Resolve a model name or alias to its :class:`ModelInfo`.

    Raises
    ------
    KeyError
        When *name* does not match any known model or alias.

    Examples
    --------
    >>> resolve_model("sonnet").id
    'claude-sonnet-4-5'
    """
    resolved_id = ALIASES.get(name, name)
    if resolved_id not in MODELS:
        known = sorted(list(MODELS.keys()) + list(ALIASES.keys()))
        raise KeyError(f"Unknown model {name!r}. Known models and aliases: {known}")
    return MODELS[resolved_id]


def find_model(provider: str, model: str) -> ModelInfo | None:
    """Catalogue entry for *model* served by *provider*, if any.

    OpenRouter ids carry a vendor prefix (``openai/gpt-4o-mini``); a bare
    id is also matched against that suffix so pricing is still found.
    """
    resolved = ALIASES.get(model, model)
    info = MODELS.get(resolved)
    if info is not None and info.provider == provider:
        return info
    for candidate in MODELS.values():
        if candidate.provider != provider:
            continue
        if candidate.id.rsplit("/", 1)[-1] == resolved.rsplit("/", 1)[-1]:
            return candidate
    return info


def get_provider_spec(provider: str) -> ProviderSpec:
    try:
        return PROVIDERS[provider]
    except KeyError:
        raise ConfigError(
            f"Unknown provider {provider!r}. Known providers: {sorted(PROVIDERS)}"
        ) from None


def create_provider(
    provider: str,
    model: str | None = None,
    api_key: str | None = None,
    base_url: str | None = None,
) -> ProviderAdapter:
    """Instantiate the adapter for *provider*.

    Parameters
    ----------
    provider:
        Provider id from :data:`PROVIDERS` (e.g. ``"openrouter"``).
    model:
        Model id or alias; the provider's default when *None*.
    api_key:
        API key. When *None* the provider's environment variable is read;
        local providers need none.
    base_url:
        Overrides the provider's endpoint.

    Raises
    ------
    ConfigError
        Unknown provider, or a required API key is missing.
    """
    spec = get_provider_spec(provider)
    model_id = ALIASES.get(model, model) if model else spec.default_model
    key = api_key or (os.environ.get(spec.api_key_env) if spec.api_key_env else None)
    if not key and not spec.is_local:
        raise ConfigError(
            f"No API key for {spec.display_name}. Set {spec.api_key_env} or pass --api-key."
        )

    logger.debug("Creating %s provider for model %s", provider, model_id)
    if spec.adapter == "anthropic":
        from atelier.providers.anthropic import AnthropicProvider

        return AnthropicProvider(api_key=key, model=model_id, base_url=base_url)

    from atelier.providers.openai import OpenAIProvider

    headers = None
    if provider == "openrouter":
        headers = {"X-Title": "Atelier"}
    return OpenAIProvider(
        api_key=key or "not-needed",
        model=model_id,
        base_url=base_url or spec.base_url,
        provider_name=provider,
        extra_headers=headers,
    )
