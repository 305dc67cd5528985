"""Gas cost estimation."""

from .estimator import (
    GasEstimator,
    NetworkGasEstimator,
    NetworkGasConfig,
    NETWORK_CONFIGS,
    OPTIMIZATION_FACTORS,
    GasOperation,
    OperationCost,
    GasEstimate,
    GasStrategy,
    GasStrategyPlan,
    default_operations
)

__all__ = [
    "GasEstimator",
    "NetworkGasEstimator",
    "NetworkGasConfig",
    "NETWORK_CONFIGS",
    "OPTIMIZATION_FACTORS",
    "GasOperation",
    "OperationCost",
    "GasEstimate",
    "GasStrategy",
    "GasStrategyPlan",
    "default_operations",
]
