"""Tests for cost calculation."""

from __future__ import annotations

import pytest

from atelier.core.cost import calculate_cost, pricing_for, usage_from_stream
from atelier.types.messages import UsageInfo


class TestPricing:
    def test_catalogue_price(self):
        assert pricing_for("openai", "gpt-4o") == (2.50, 10.00, 0.0)

    def test_alias_price(self):
        assert pricing_for("anthropic", "sonnet")[:2] == (3.00, 15.00)

    def test_local_models_are_free(self):
        assert pricing_for("ollama", "some-local-model") == (0.0, 0.0, 0.0)

    def test_unknown_model_falls_back(self, caplog):
        assert pricing_for("openrouter", "mystery/model-x") == (1.00, 2.00, 0.0)
        assert "default pricing" in caplog.text


class TestCalculateCost:
    def test_input_and_output(self):
        cost = calculate_cost("openai", "gpt-4o", 1_000_000, 100_000)
        assert cost == pytest.approx(2.50 + 1.00)

    def test_reported_cost_wins(self):
        assert calculate_cost("openai", "gpt-4o", 1_000_000, 0, reported_cost=0.5) == 0.5

    def test_zero_reported_cost_ignored(self):
        cost = calculate_cost("openai", "gpt-4o", 1_000_000, 0, reported_cost=0.0)
        assert cost == pytest.approx(2.50)

    def test_reasoning_tokens_billed_separately(self):
        # 1M completion tokens of which 400k are reasoning.
        cost = calculate_cost("openrouter", "deepseek/deepseek-reasoner", 0, 1_000_000, reasoning_tokens=400_000)
        assert cost == pytest.approx(0.6 * 2.19 + 0.4 * 5.50)

    def test_negative_counts_clamped(self):
        assert calculate_cost("openai", "gpt-4o", -5, -5) == 0.0


class TestUsageFromStream:
    def test_anthropic_style_keys(self):
        usage = usage_from_stream({"input_tokens": 1000, "output_tokens": 500}, "openai", "gpt-4o-mini")
        assert usage.prompt_tokens == 1000
        assert usage.completion_tokens == 500
        assert usage.total_tokens == 1500
        assert usage.cost == pytest.approx(1000 / 1e6 * 0.15 + 500 / 1e6 * 0.60)
        assert usage.provider == "openai"
        assert usage.model == "gpt-4o-mini"

    def test_openai_style_keys_and_cost(self):
        usage = usage_from_stream(
            {"prompt_tokens": 10, "completion_tokens": 2, "cost": 0.01}, "openrouter", "deepseek/deepseek-chat",
        )
        assert usage.total_tokens == 12
        assert usage.cost == 0.01

    def test_missing_usage(self):
        usage = usage_from_stream(None, "openai", "gpt-4o")
        assert usage.total_tokens == 0
        assert usage.cost == 0.0

    def test_usage_info_add(self):
        total = UsageInfo()
        total.add(UsageInfo(prompt_tokens=1, completion_tokens=2, total_tokens=3, cost=0.1, model="a"))
        total.add(UsageInfo(prompt_tokens=1, completion_tokens=2, total_tokens=3, cost=0.1, provider="p"))
        assert total.total_tokens == 6
        assert total.cost == pytest.approx(0.2)
        assert (total.provider, total.model) == ("p", "a")
