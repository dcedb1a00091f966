"""Provider adapters for Atelier.

Public surface
--------------
- :class:`BaseProvider`      — abstract base with shared utilities
- :class:`AnthropicProvider` — Claude adapter (Anthropic SDK)
- :class:`OpenAIProvider`    — OpenAI / compatible adapter (openai SDK)
- :func:`resolve_model`      — resolve model name / alias to :class:`ModelInfo`
- :func:`create_provider`    — factory that returns the right adapter
- :data:`MODELS`             — model catalogue with pricing
- :data:`PROVIDERS`          — provider endpoints
"""

from __future__ import annotations

from atelier.providers.anthropic import AnthropicProvider
from atelier.providers.base import BaseProvider
from atelier.providers.openai import OpenAIProvider
from atelier.providers.registry import (
    ALIASES,
    MODELS,
    PROVIDERS,
    create_provider,
    find_model,
    get_provider_spec,
    resolve_model,
)

__all__ = [
    "ALIASES",
    "AnthropicProvider",
    "BaseProvider",
    "MODELS",
    "OpenAIProvider",
    "PROVIDERS",
    "create_provider",
    "find_model",
    "get_provider_spec",
    "resolve_model",
]
