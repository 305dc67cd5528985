"""Engine configuration."""

from .settings import EngineSettings, settings, configure_logging
from .analysis_config import (
    AnalysisConfig,
    RiskConfig,
    LiquidityConfig,
    ScannerConfig,
    CompositeWeights
)

__all__ = [
    "EngineSettings",
    "settings",
    "configure_logging",
    "AnalysisConfig",
    "RiskConfig",
    "LiquidityConfig",
    "ScannerConfig",
    "CompositeWeights",
]
