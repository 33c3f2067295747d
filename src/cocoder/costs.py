"""Cost estimation for model usage."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass


@dataclass(frozen=True)
class ModelCost:
    """USD per token."""

    input: float
    output: float


type CostTable = Mapping[str, ModelCost]

DEFAULT_COST_TABLE: CostTable = {
    "gpt-4o": ModelCost(input=5 / 1_000_000, output=15 / 1_000_000),
    "gpt-4-turbo": ModelCost(input=10 / 1_000_000, output=30 / 1_000_000),
    "gpt-3.5-turbo-0125": ModelCost(input=0.5 / 1_000_000, output=1.5 / 1_000_000),
}


def estimate_cost(model: str | None, input_tokens: int, output_tokens: int, cost_table: CostTable) -> float | None:
    """Return the estimated cost in USD rounded to 6 decimals, or None for unknown models."""
    if model is None:
        return None
    costs = cost_table.get(model)
    if costs is None:
        return None
    return round(costs.input * input_tokens + costs.output * output_tokens, 6)
