"""Analysis orchestration."""

from .assessment import (
    AnalysisResult,
    AnalysisBreakdown,
    AnalysisFailure,
    FinalAssessment,
    ComponentScores,
    CriticalFactor,
    ExecutionPlan,
    ExecutionStep,
    Alternative,
    AlternativeType,
    LegAnalysis,
    Recommendation,
    ViabilityTier,
    RankedOpportunity,
    BatchAnalysis,
    ScenarioOutcome,
    ScenarioSimulation,
    recommend,
    viability_tier
)
from .requests import (
    OpportunityRequest,
    VenueLeg,
    MarketConditions,
    AnalysisConstraints,
    Scenario
)
from .orchestrator import AnalysisOrchestrator
from .factory import create_engine, shutdown_engine

__all__ = [
    "AnalysisResult",
    "AnalysisBreakdown",
    "AnalysisFailure",
    "FinalAssessment",
    "ComponentScores",
    "CriticalFactor",
    "ExecutionPlan",
    "ExecutionStep",
    "Alternative",
    "AlternativeType",
    "LegAnalysis",
    "Recommendation",
    "ViabilityTier",
    "RankedOpportunity",
    "BatchAnalysis",
    "ScenarioOutcome",
    "ScenarioSimulation",
    "recommend",
    "viability_tier",
    "OpportunityRequest",
    "VenueLeg",
    "MarketConditions",
    "AnalysisConstraints",
    "Scenario",
    "AnalysisOrchestrator",
    "create_engine",
    "shutdown_engine",
]
