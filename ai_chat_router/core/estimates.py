"""
Cost and latency estimates for routing decisions.

Latency figures are a heuristic (a base constant scaled by per-family
multipliers), not a measured SLA.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional

from ai_chat_router.storage.models import Model
from .token_counter import estimate_tokens


@dataclass(frozen=True)
class Estimate:
    """Pre-call estimate attached to a routing decision."""
    tokens: int
    cost: float
    latency_ms: int


def estimate_cost(tokens: int, cost_per_token: Optional[float]) -> float:
    """Estimated cost; zero when the model declares no price."""
    if not cost_per_token:
        return 0.0
    # Decimal avoids float drift on tiny per-token prices
    return float(Decimal(tokens) * Decimal(str(cost_per_token)))


def estimate_latency_ms(
    model_name: str,
    high_complexity: bool,
    base_latency_ms: int,
    multipliers: Dict[str, float]
) -> int:
    """Heuristic processing time.

    Every family whose key appears in the model name applies its multiplier;
    high complexity doubles the result.
    """
    latency = float(base_latency_ms)
    for family, multiplier in multipliers.items():
        if family in model_name:
            latency *= multiplier
    if high_complexity:
        latency *= 2
    return int(round(latency))


def build_estimate(
    model: Model,
    content_length: Optional[int],
    high_complexity: bool,
    default_tokens: int,
    base_latency_ms: int,
    multipliers: Dict[str, float]
) -> Estimate:
    tokens = estimate_tokens(content_length, default=default_tokens)
    return Estimate(
        tokens=tokens,
        cost=estimate_cost(tokens, model.cost_per_token),
        latency_ms=estimate_latency_ms(model.name, high_complexity, base_latency_ms, multipliers)
    )
