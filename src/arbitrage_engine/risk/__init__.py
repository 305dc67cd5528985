"""Risk scoring."""

from .risk_scorer import (
    RiskScorer,
    RiskInputs,
    RiskFactor,
    RiskAssessment,
    RiskLevel,
    RiskAction,
    RISK_MULTIPLIERS
)

__all__ = [
    "RiskScorer",
    "RiskInputs",
    "RiskFactor",
    "RiskAssessment",
    "RiskLevel",
    "RiskAction",
    "RISK_MULTIPLIERS",
]
