"""Cost calculation from token usage and catalogue pricing."""

from __future__ import annotations

import logging
from typing import Any

from atelier.providers.registry import PROVIDERS, find_model
from atelier.types.messages import UsageInfo

logger = logging.getLogger(__name__)

# USD per million tokens when a model is not in the catalogue.
DEFAULT_INPUT_COST_PER_MTOK = 1.00
DEFAULT_OUTPUT_COST_PER_MTOK = 2.00

_warned: set[str] = set()


def pricing_for(provider: str, model: str) -> tuple[float, float, float]:
    """Return ``(input, output, reasoning)`` prices per million tokens."""
    info = find_model(provider, model)
    if info is not None:
        return info.input_cost_per_mtok, info.output_cost_per_mtok, info.reasoning_cost_per_mtok
    spec = PROVIDERS.get(provider)
    if spec is not None and spec.is_local:
        return 0.0, 0.0, 0.0
    key = f"{provider}/{model}"
    if key not in _warned:
        _warned.add(key)
        logger.warning("Falling back to default pricing for %s", key)
    return DEFAULT_INPUT_COST_PER_MTOK, DEFAULT_OUTPUT_COST_PER_MTOK, 0.0


def calculate_cost(
    provider: str,
    model: str,
    prompt_tokens: int,
    completion_tokens: int,
    reasoning_tokens: int = 0,
    reported_cost: float | None = None,
) -> float:
    """Cost of one turn in USD.

    A positive cost reported by the provider wins over the computed one.
    Reasoning tokens are billed at the reasoning price when the model has
    one and are otherwise part of the completion tokens.
    """
    if reported_cost is not None and reported_cost > 0:
        return reported_cost
    input_price, output_price, reasoning_price = pricing_for(provider, model)
    cost = max(prompt_tokens, 0) / 1_000_000 * input_price
    output_tokens = max(completion_tokens, 0)
    if reasoning_tokens and reasoning_price:
        output_tokens = max(output_tokens - reasoning_tokens, 0)
        cost += reasoning_tokens / 1_000_000 * reasoning_price
    cost += output_tokens / 1_000_000 * output_price
    return cost


def usage_from_stream(
    raw: dict[str, Any] | None,
    provider: str,
    model: str,
) -> UsageInfo:
    """Build the :class:`UsageInfo` of one turn from a ``message_end`` usage dict."""
    raw = raw or {}
    prompt = int(raw.get("input_tokens", raw.get("prompt_tokens", 0)) or 0)
    completion = int(raw.get("output_tokens", raw.get("completion_tokens", 0)) or 0)
    reported = raw.get("cost")
    cost = calculate_cost(
        provider,
        model,
        prompt,
        completion,
        reasoning_tokens=int(raw.get("reasoning_tokens", 0) or 0),
        reported_cost=float(reported) if isinstance(reported, (int, float)) else None,
    )
    return UsageInfo(
        prompt_tokens=prompt,
        completion_tokens=completion,
        total_tokens=prompt + completion,
        cost=cost,
        provider=provider,
        model=model,
    )
