"""Market tick validation and enrichment."""

from riskmind.market.validator import MarketValidator, price_momentum

__all__ = ["MarketValidator", "price_momentum"]
