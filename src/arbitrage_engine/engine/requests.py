"""Request models accepted by the analysis orchestrator."""
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.models import PoolState
from ..gas.estimator import GasOperation


class VenueLeg(BaseModel):
    """Quote and optional pool snapshot for one side of the trade."""
    venue: str = Field(..., min_length=1)
    network: str = Field(..., min_length=1)
    protocol: str = "uniswap_v2"
    price: Decimal = Field(..., gt=0, description="Token price in the reference asset")
    fee_rate: Decimal = Field(Decimal("0.003"), ge=0, lt=1)
    pool: Optional[PoolState] = Field(None, description="Pool snapshot oriented for this leg's swap")


class MarketConditions(BaseModel):
    volatility: Optional[float] = Field(None, ge=0)
    congestion: Optional[float] = Field(None, ge=0)


class OpportunityRequest(BaseModel):
    """
    A two-venue opportunity to analyze.

    Unknown keys are kept so that the freshness guard still sees flags such
    as ``simulated`` after the request has been parsed.
    """
    model_config = ConfigDict(extra="allow")

    token: str = Field(..., min_length=1)
    buy: VenueLeg
    sell: VenueLeg
    timestamp: Optional[float] = Field(None, description="Epoch seconds or milliseconds")
    cross_chain: Optional[bool] = None
    protocol_fee_rate: Optional[Decimal] = Field(None, ge=0, lt=1)
    market: MarketConditions = Field(default_factory=MarketConditions)
    operations: Optional[List[GasOperation]] = None
    source: Optional[str] = None

    @field_validator("token")
    @classmethod
    def upper_symbol(cls, v: str) -> str:
        return v.strip().upper()

    @property
    def is_cross_chain(self) -> bool:
        if self.cross_chain is not None:
            return self.cross_chain
        return self.buy.network != self.sell.network


class AnalysisConstraints(BaseModel):
    max_execution_time_s: Optional[float] = Field(None, gt=0)
    max_price_impact: Optional[Decimal] = Field(None, gt=0, lt=1)


class Scenario(BaseModel):
    """A what-if variant of an opportunity."""
    name: str = Field(..., min_length=1)
    trade_amount: Decimal = Field(..., gt=0)
    buy_price_multiplier: Decimal = Field(Decimal("1"), gt=0)
    sell_price_multiplier: Decimal = Field(Decimal("1"), gt=0)
    market: Optional[MarketConditions] = None
    config_overrides: Dict[str, Any] = Field(default_factory=dict)
    constraints: Optional[AnalysisConstraints] = None

    def apply(self, request: OpportunityRequest) -> OpportunityRequest:
        """Copy of ``request`` with this scenario's prices and market conditions."""
        update: Dict[str, Any] = {
            "buy": request.buy.model_copy(update={"price": request.buy.price * self.buy_price_multiplier}),
            "sell": request.sell.model_copy(update={"price": request.sell.price * self.sell_price_multiplier}),
        }
        if self.market is not None:
            update["market"] = self.market
        return request.model_copy(update=update)
