"""Configuration types for Atelier."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """Retry policy for the transport call to the model provider."""

    max_attempts: int = 3
    backoff_base: float = 1.0  # seconds; doubled each retry
    backoff_max: float = 30.0


@dataclass(slots=True)
class RunConfig:
    """Configuration for an agent loop."""

    project_id: str = "default"
    provider: str = "openrouter"
    model: str | None = None
    api_key: str | None = None
    base_url: str | None = None
    max_turns: int = 100
    max_steps: int = 50
    max_tokens: int = 4096
    chat_mode: bool = False
    system_prompt: str | None = None
    checkpoint_before_run: bool = True
    retry: RetryConfig = field(default_factory=RetryConfig)
    extra: dict[str, Any] = field(default_factory=dict)
