"""Exception hierarchy for the arbitrage analysis engine."""
from typing import Any, Dict, Optional


class ArbitrageEngineError(Exception):
    """Base exception for all engine errors."""

    kind = "engine_error"

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        venue: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize engine error.

        Args:
            message: Error message
            stage: Pipeline stage where the error occurred
            venue: Venue or pool the error relates to
            details: Additional structured context
        """
        self.message = message
        self.stage = stage
        self.venue = venue
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """String representation of the error."""
        base_msg = super().__str__()
        if self.stage and self.venue:
            return f"[{self.stage}@{self.venue}] {base_msg}"
        elif self.stage:
            return f"[{self.stage}] {base_msg}"
        elif self.venue:
            return f"[{self.venue}] {base_msg}"
        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "message": super().__str__(),
            "stage": self.stage,
            "venue": self.venue,
            "details": self.details,
        }


class InvalidInput(ArbitrageEngineError):
    """Raised for non-positive amounts, prices or malformed requests."""

    kind = "invalid_input"


class StaleData(ArbitrageEngineError):
    """Raised when market data is too old or not from a real source."""

    kind = "stale_data"


class PoolStateInvalid(ArbitrageEngineError):
    """Raised when a pool state cannot be used by its pricing model."""

    kind = "pool_state_invalid"


class ImpactExceeded(ArbitrageEngineError):
    """Raised when a simulated trade moves the price past the allowed bound."""

    kind = "impact_exceeded"

    def __init__(self, message: str, price_impact=None, max_price_impact=None, **kwargs):
        self.price_impact = price_impact
        self.max_price_impact = max_price_impact
        super().__init__(message, **kwargs)


class LiquidityInsufficient(ArbitrageEngineError):
    """Raised when a pool cannot absorb the requested trade."""

    kind = "liquidity_insufficient"


class ExternalCollaboratorError(ArbitrageEngineError):
    """Raised when a feed or gas estimator call fails."""

    kind = "external_error"


class ExternalCollaboratorTimeout(ExternalCollaboratorError):
    """Raised when a feed or gas estimator call does not answer in time."""

    kind = "external_timeout"

    def __init__(self, message: str, timeout_seconds: Optional[float] = None, **kwargs):
        self.timeout_seconds = timeout_seconds
        super().__init__(message, **kwargs)
