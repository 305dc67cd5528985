"""AMM price-impact models, one per pool family."""

from .base import (
    PriceImpactModel,
    SwapSimulation,
    DEFAULT_MAX_PRICE_IMPACT,
    get_model,
    calculate_price_impact,
    registered_families
)
from .constant_product import ConstantProductModel
from .concentrated_liquidity import ConcentratedLiquidityModel, tick_to_price
from .weighted_pool import WeightedPoolModel
from .stable_swap import StableSwapModel, get_D, get_y

__all__ = [
    "PriceImpactModel",
    "SwapSimulation",
    "DEFAULT_MAX_PRICE_IMPACT",
    "get_model",
    "calculate_price_impact",
    "registered_families",
    "ConstantProductModel",
    "ConcentratedLiquidityModel",
    "tick_to_price",
    "WeightedPoolModel",
    "StableSwapModel",
    "get_D",
    "get_y",
]
