"""Token and cost estimation for remote generators."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping

from .models import CostEstimate, CostInfo

PRICING: Mapping[str, Mapping[str, float]] = {
    # OpenAI
    "gpt-4o": {"input": 0.0025, "output": 0.01},
    "gpt-4o-mini": {"input": 0.00015, "output": 0.0006},
    "gpt-4-turbo": {"input": 0.01, "output": 0.03},
    "gpt-4": {"input": 0.03, "output": 0.06},
    "gpt-3.5-turbo": {"input": 0.0005, "output": 0.0015},
    # Anthropic
    "claude-3-opus": {"input": 0.015, "output": 0.075},
    "claude-3-sonnet": {"input": 0.003, "output": 0.015},
    "claude-3-haiku": {"input": 0.00025, "output": 0.00125},
    # Google Gemini
    "gemini-2.5-pro": {"input": 0.00125, "output": 0.005},
    "gemini-2.5-flash": {"input": 0.000075, "output": 0.0003},
    "gemini-2.0-flash": {"input": 0.000075, "output": 0.0003},
    "gemini-2.0-flash-lite": {"input": 0.000035, "output": 0.00014},
    # Mistral
    "mistral-large": {"input": 0.004, "output": 0.012},
    "mistral-medium": {"input": 0.0027, "output": 0.0081},
    "mistral-small": {"input": 0.001, "output": 0.003},
    # xAI Grok
    "grok-beta": {"input": 0.005, "output": 0.015},
    "grok-2": {"input": 0.005, "output": 0.015},
    # Local models
    "ollama": {"input": 0.0, "output": 0.0},
    "default": {"input": 0.001, "output": 0.003},
}
"""USD per 1000 tokens."""

CHARS_PER_TOKEN = 4
ESTIMATED_OUTPUT_TOKENS = 500
DEFAULT_WARN_THRESHOLD = 0.10
DEFAULT_MAX_PER_REQUEST = 0.50


def estimate_tokens(text: str) -> int:
    """Rough token count, about four characters per token."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def get_pricing(model: str) -> Mapping[str, float]:
    """
    Look up the price of a model: exact name first, then the longest known prefix
    (``gpt-4-turbo-preview`` is priced as ``gpt-4-turbo``), then the default price.
    """
    if model in PRICING:
        return PRICING[model]
    prefixes = [key for key in PRICING if key != "default" and model.startswith(key)]
    if prefixes:
        return PRICING[max(prefixes, key=len)]
    return PRICING["default"]


@dataclass
class CostEstimator:
    """Estimates the cost of a request before it is sent and computes it afterwards."""

    warn_threshold: float = DEFAULT_WARN_THRESHOLD
    """Estimates above this amount (USD) produce a warning."""

    max_per_request: float = DEFAULT_MAX_PER_REQUEST
    """Estimates above this amount (USD) block the request."""

    def estimate_cost(self, prompt: str, model: str, context_tokens: int = 0) -> CostEstimate:
        """
        Estimate the cost of a request.

        :param prompt: The user prompt
        :param model: The model that would answer it
        :param context_tokens: Tokens of the system prompt and schema context
        :return: The estimated cost
        """
        pricing = get_pricing(model)
        input_tokens = estimate_tokens(prompt) + context_tokens
        output_tokens = ESTIMATED_OUTPUT_TOKENS
        amount = (input_tokens / 1000) * pricing["input"] + (output_tokens / 1000) * pricing["output"]
        return CostEstimate(
            amount=amount,
            currency="USD",
            model=model,
            estimated_input_tokens=input_tokens,
            estimated_output_tokens=output_tokens,
        )

    def calculate_actual_cost(self, usage: Mapping[str, Any], model: str) -> CostInfo:
        """
        Compute the cost from the usage a provider reported.

        :param usage: ``prompt_tokens``, ``completion_tokens`` and optionally ``total_tokens``
        :param model: The model that answered
        :return: The actual cost next to the estimate for the same input size
        """
        pricing = get_pricing(model)
        input_tokens = int(usage.get("prompt_tokens") or 0)
        output_tokens = int(usage.get("completion_tokens") or 0)
        total_tokens = int(usage.get("total_tokens") or (input_tokens + output_tokens))
        actual = (input_tokens / 1000) * pricing["input"] + (output_tokens / 1000) * pricing["output"]
        estimate = self.estimate_cost("", model, input_tokens)
        return CostInfo(
            estimated=estimate.amount,
            actual=actual,
            currency="USD",
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=total_tokens,
        )

    def should_warn(self, estimate: CostEstimate) -> bool:
        return estimate.amount > self.warn_threshold

    def exceeds_maximum(self, estimate: CostEstimate) -> bool:
        return estimate.amount > self.max_per_request

