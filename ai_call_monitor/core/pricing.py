"""
Pricing calculations for recorded calls.

Prices are supplied by the host application (see ``config.loader``);
this module only applies them to observed token counts.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_UP
from typing import Dict, Optional

import structlog

from .token_counter import TokenUsage

logger = structlog.wrap_logger(logging.getLogger(__name__), wrapper_class=structlog.stdlib.BoundLogger)

COST_QUANTUM = Decimal("0.000001")


@dataclass(frozen=True)
class ModelPricing:
    """Per-token pricing for a specific model."""
    prompt_cost_per_1k: Decimal  # Cost per 1K prompt tokens
    completion_cost_per_1k: Decimal  # Cost per 1K completion tokens

    def __post_init__(self):
        """Validate prices are non-negative."""
        if self.prompt_cost_per_1k < 0:
            raise ValueError("prompt_cost_per_1k cannot be negative")
        if self.completion_cost_per_1k < 0:
            raise ValueError("completion_cost_per_1k cannot be negative")


@dataclass(frozen=True)
class PricingTable:
    """Pricing table keyed by model name or model-name prefix."""
    prices: Dict[str, ModelPricing] = field(default_factory=dict)

    def get_pricing(self, model: str) -> Optional[ModelPricing]:
        """Get pricing for a model.

        An exact (case-insensitive) match wins; otherwise the longest
        configured key that prefixes the model name is used, so
        ``gpt-4-turbo-2024-04-09`` resolves to a ``gpt-4-turbo`` entry.

        Args:
            model: Model identifier as resolved for the call

        Returns:
            ModelPricing for the model, or None if no entry applies
        """
        key = model.lower()
        prices = {name.lower(): pricing for name, pricing in self.prices.items()}
        if key in prices:
            return prices[key]
        prefixes = [p for p in prices if key.startswith(p)]
        if not prefixes:
            return None
        return prices[max(prefixes, key=len)]

    def estimate_cost(self, model: str, usage: TokenUsage) -> float:
        """Calculate the cost of one call.

        Args:
            model: Model identifier
            usage: Token usage data

        Returns:
            Cost rounded UP to 6 decimal places, 0.0 for unpriced models
        """
        pricing = self.get_pricing(model)
        if pricing is None:
            if self.prices:
                logger.debug("cost_unknown_model", model=model)
            return 0.0

        prompt_cost = (Decimal(usage.prompt_tokens) / Decimal("1000")) * pricing.prompt_cost_per_1k
        completion_cost = (Decimal(usage.completion_tokens) / Decimal("1000")) * pricing.completion_cost_per_1k

        total_cost = prompt_cost + completion_cost
        return float(total_cost.quantize(COST_QUANTUM, rounding=ROUND_UP))
