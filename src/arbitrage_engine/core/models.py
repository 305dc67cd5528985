"""Core data model for the arbitrage analysis engine.

Market inputs (tokens, quotes, pool states) are pydantic models validated at
the boundary. Everything derived from them during an analysis is a frozen
dataclass: a new stage produces a new instance instead of mutating one.
"""
import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..exceptions import ImpactExceeded, PoolStateInvalid


class PoolFamily(str, Enum):
    """AMM pricing families the engine knows how to simulate."""
    CONSTANT_PRODUCT = "constant_product"
    CONCENTRATED_LIQUIDITY = "concentrated_liquidity"
    WEIGHTED_POOL = "weighted_pool"
    STABLE_SWAP = "stable_swap"


# Venue protocol name -> pricing family
PROTOCOL_FAMILIES: Dict[str, PoolFamily] = {
    "uniswap_v2": PoolFamily.CONSTANT_PRODUCT,
    "sushiswap": PoolFamily.CONSTANT_PRODUCT,
    "pancakeswap": PoolFamily.CONSTANT_PRODUCT,
    "quickswap": PoolFamily.CONSTANT_PRODUCT,
    "biswap": PoolFamily.CONSTANT_PRODUCT,
    "camelot": PoolFamily.CONSTANT_PRODUCT,
    "uniswap_v3": PoolFamily.CONCENTRATED_LIQUIDITY,
    "balancer": PoolFamily.WEIGHTED_POOL,
    "curve": PoolFamily.STABLE_SWAP,
}


def family_for_protocol(protocol: str) -> Optional[PoolFamily]:
    """Resolve a protocol name (``uniswapV3``, ``uniswap-v3`` ...) to its family."""
    normalized = protocol.strip().lower().replace("-", "_")
    if normalized in PROTOCOL_FAMILIES:
        return PROTOCOL_FAMILIES[normalized]
    compact = normalized.replace("_", "")
    for name, family in PROTOCOL_FAMILIES.items():
        if name.replace("_", "") == compact:
            return family
    return None


class TradeDirection(str, Enum):
    """Which venue to buy on: A_TO_B buys on A (cheaper) and sells on B."""
    A_TO_B = "A_TO_B"
    B_TO_A = "B_TO_A"


class OpportunityType(str, Enum):
    SIMPLE = "simple"
    TRIANGULAR = "triangular"


class Complexity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Token(BaseModel):
    """A token on a specific network."""
    model_config = ConfigDict(frozen=True)

    symbol: str = Field(..., min_length=1, description="Token symbol, e.g. WETH")
    network: str = Field(..., min_length=1, description="Network identifier, e.g. ethereum")
    decimals: int = Field(18, ge=0, le=36, description="Token decimal precision")


class PoolState(BaseModel):
    """
    Snapshot of one pool, oriented from the input token to the output token.

    Only the fields of the pool's family are required. Positivity of the
    reserves is checked by ``check_state`` so that bad pool data surfaces as
    ``PoolStateInvalid`` for that leg instead of a validation error.
    """
    family: PoolFamily
    venue: str = "unknown"
    network: str = "ethereum"

    reserve_in: Decimal = Field(Decimal("0"), description="Reserve of the input token")
    reserve_out: Decimal = Field(Decimal("0"), description="Reserve of the output token")
    reserve_in_usd: Optional[Decimal] = Field(None, description="Input-side reserve in USD")
    reserve_out_usd: Optional[Decimal] = Field(None, description="Output-side reserve in USD")

    fee_rate: Decimal = Field(Decimal("0.003"), ge=0, lt=1)
    volume_24h: Decimal = Field(Decimal("0"), ge=0)
    timestamp: float = Field(default_factory=time.time)

    # Weighted pools
    weight_in: Optional[Decimal] = None
    weight_out: Optional[Decimal] = None

    # Stable-swap pools
    amplification: Optional[Decimal] = None

    # Concentrated-liquidity pools
    liquidity: Optional[Decimal] = None
    current_tick: Optional[int] = None
    tick_lower: Optional[int] = None
    tick_upper: Optional[int] = None
    tick_spacing: int = Field(60, gt=0)
    tick_liquidity_net: Dict[int, Decimal] = Field(default_factory=dict)

    @property
    def input_reserve_usd(self) -> Decimal:
        return self.reserve_in_usd if self.reserve_in_usd is not None else self.reserve_in

    @property
    def output_reserve_usd(self) -> Decimal:
        return self.reserve_out_usd if self.reserve_out_usd is not None else self.reserve_out

    @property
    def total_liquidity_usd(self) -> Decimal:
        return self.input_reserve_usd + self.output_reserve_usd

    def check_state(self) -> None:
        """
        Verify the fields the pool's family needs are present and positive.

        Raises:
            PoolStateInvalid: on any missing, zero or negative value
        """
        def fail(message: str) -> None:
            raise PoolStateInvalid(message, stage="pool_state", venue=self.venue)

        if self.reserve_in <= 0 or self.reserve_out <= 0:
            fail(f"Reserves must be positive (in={self.reserve_in}, out={self.reserve_out})")

        if self.family == PoolFamily.WEIGHTED_POOL:
            if self.weight_in is None or self.weight_out is None:
                fail("Weighted pool requires weight_in and weight_out")
            if self.weight_in <= 0 or self.weight_out <= 0:
                fail(f"Pool weights must be positive (in={self.weight_in}, out={self.weight_out})")

        elif self.family == PoolFamily.STABLE_SWAP:
            if self.amplification is None or self.amplification <= 0:
                fail(f"Stable-swap pool requires a positive amplification, got {self.amplification}")

        elif self.family == PoolFamily.CONCENTRATED_LIQUIDITY:
            if self.liquidity is None or self.liquidity <= 0:
                fail(f"Active liquidity must be positive, got {self.liquidity}")
            if self.current_tick is None or self.tick_lower is None or self.tick_upper is None:
                fail("Concentrated pool requires current_tick, tick_lower and tick_upper")
            if not self.tick_lower <= self.current_tick < self.tick_upper:
                fail(
                    f"Current tick {self.current_tick} outside range "
                    f"[{self.tick_lower}, {self.tick_upper})"
                )

    def age_seconds(self, now: Optional[float] = None) -> float:
        return (now if now is not None else time.time()) - self.timestamp


class PriceQuote(BaseModel):
    """Price of one token on one venue."""
    model_config = ConfigDict(frozen=True)

    venue: str
    network: str
    protocol: str = "uniswap_v2"
    price: Decimal = Field(..., gt=0, description="Price in the reference currency")
    fee_rate: Decimal = Field(Decimal("0.003"), ge=0, lt=1)
    reliability: float = Field(0.9, ge=0.0, le=1.0)
    liquidity_usd: Decimal = Field(Decimal("0"), ge=0)
    timestamp: float = Field(default_factory=time.time)
    source: Optional[str] = None

    def age_seconds(self, now: Optional[float] = None) -> float:
        return (now if now is not None else time.time()) - self.timestamp

    def is_fresh(self, max_age_seconds: float = 30.0, now: Optional[float] = None) -> bool:
        return self.age_seconds(now) <= max_age_seconds


class PairQuote(BaseModel):
    """Exchange rate between two tokens on one venue (quote units per base unit)."""
    model_config = ConfigDict(frozen=True)

    base: str
    quote: str
    venue: str
    network: str
    rate: Decimal = Field(..., gt=0)
    fee_rate: Decimal = Field(Decimal("0.003"), ge=0, lt=1)
    reliability: float = Field(0.9, ge=0.0, le=1.0)
    liquidity_usd: Decimal = Field(Decimal("0"), ge=0)
    timestamp: float = Field(default_factory=time.time)

    @property
    def rate_after_fee(self) -> Decimal:
        return self.rate * (Decimal("1") - self.fee_rate)

    def is_fresh(self, max_age_seconds: float = 30.0, now: Optional[float] = None) -> bool:
        return (now if now is not None else time.time()) - self.timestamp <= max_age_seconds


@dataclass(frozen=True)
class SpreadResult:
    """Price difference between two venues."""
    absolute: Decimal
    relative: Decimal           # fraction of the lower price
    percentage: Decimal         # relative * 100
    higher_price: Decimal
    lower_price: Decimal
    direction: TradeDirection
    is_valid: bool


@dataclass(frozen=True)
class CostBreakdown:
    gas: Decimal
    protocol_fee: Decimal
    slippage: Decimal
    bridge_fee: Decimal

    @property
    def total(self) -> Decimal:
        return self.gas + self.protocol_fee + self.slippage + self.bridge_fee


@dataclass(frozen=True)
class NetProfitAnalysis:
    """Profit of a two-leg trade after all execution costs."""
    gross_profit: Decimal
    gross_profit_percentage: Decimal
    costs: CostBreakdown
    net_profit: Decimal
    net_profit_percentage: Decimal
    roi: Decimal
    investment: Decimal
    cost_ratio: Decimal
    efficiency: float
    is_profitable: bool
    profitability_score: float

    @property
    def total_costs(self) -> Decimal:
        return self.costs.total


@dataclass(frozen=True)
class PriceImpactResult:
    """Outcome of simulating one trade against one pool."""
    family: PoolFamily
    amount_in: Decimal
    amount_in_after_fee: Decimal
    amount_out: Decimal
    price_before: Decimal           # spot, output per input
    price_after: Decimal            # execution price of the fee-adjusted input
    marginal_price_after: Decimal   # spot once the trade has settled
    price_impact: Decimal           # 0-1
    slippage: Decimal               # 0-1, fee inclusive
    effective_price: Decimal        # output per gross input
    max_price_impact: Decimal
    is_acceptable_impact: bool
    reserve_in_after: Optional[Decimal] = None
    reserve_out_after: Optional[Decimal] = None
    fully_filled: bool = True

    @property
    def price_impact_percentage(self) -> Decimal:
        return self.price_impact * 100

    def ensure_acceptable(self, venue: Optional[str] = None) -> "PriceImpactResult":
        """Raise ``ImpactExceeded`` if the impact is above the configured maximum."""
        if not self.is_acceptable_impact:
            raise ImpactExceeded(
                f"Price impact {self.price_impact:.4%} exceeds {self.max_price_impact:.2%}",
                price_impact=self.price_impact,
                max_price_impact=self.max_price_impact,
                stage="price_impact",
                venue=venue,
            )
        return self


@dataclass(frozen=True)
class ProfitEstimate:
    """Scanner-level profit estimate from quoted prices and venue fees."""
    gross_profit: Decimal
    fees: Decimal
    net_profit: Decimal
    net_profit_percentage: Decimal


@dataclass(frozen=True)
class OpportunityValidation:
    liquidity_valid: bool
    is_executable: bool
    estimated_execution_time_ms: int
    min_liquidity_usd: Decimal


@dataclass(frozen=True)
class OpportunityMetadata:
    confidence: float
    urgency: str
    recommendation: str
    tags: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Opportunity:
    """A candidate arbitrage found by the scanner."""
    id: str
    type: OpportunityType
    token: str
    amount: Decimal
    spread_percentage: Decimal
    profit: ProfitEstimate
    cross_chain: bool
    complexity: Complexity
    buy_quote: Optional[PriceQuote] = None
    sell_quote: Optional[PriceQuote] = None
    legs: Tuple[PairQuote, ...] = ()
    route: Tuple[str, ...] = ()
    rank: int = 0
    score: float = 0.0
    risk_level: str = "MEDIUM"
    validation: Optional[OpportunityValidation] = None
    metadata: Optional[OpportunityMetadata] = None
    detected_at: float = field(default_factory=time.time)

    @property
    def networks(self) -> Tuple[str, ...]:
        if self.type == OpportunityType.TRIANGULAR:
            return tuple(sorted({leg.network for leg in self.legs}))
        return tuple(sorted({self.buy_quote.network, self.sell_quote.network}))

    def to_analysis_payload(self) -> Dict[str, Any]:
        """Shape a simple opportunity as ``analyze_opportunity`` input."""
        return {
            "token": self.token,
            "buy": {
                "venue": self.buy_quote.venue,
                "network": self.buy_quote.network,
                "protocol": self.buy_quote.protocol,
                "price": self.buy_quote.price,
                "fee_rate": self.buy_quote.fee_rate,
            },
            "sell": {
                "venue": self.sell_quote.venue,
                "network": self.sell_quote.network,
                "protocol": self.sell_quote.protocol,
                "price": self.sell_quote.price,
                "fee_rate": self.sell_quote.fee_rate,
            },
            "protocol_fee_rate": (self.buy_quote.fee_rate + self.sell_quote.fee_rate) / 2,
            "timestamp": min(self.buy_quote.timestamp, self.sell_quote.timestamp),
        }


@dataclass(frozen=True)
class VenueError:
    """A venue that failed to answer during a scan."""
    venue: str
    network: str
    kind: str
    message: str


@dataclass(frozen=True)
class ScanResult:
    """Outcome of scanning one token across venues."""
    token: str
    opportunities: Tuple[Opportunity, ...]
    quotes_received: int
    stale_quotes: int
    venue_errors: Tuple[VenueError, ...]
    scan_time_ms: float
    from_cache: bool = False
    market_conditions: Optional[Dict[str, Any]] = None

    @property
    def venues_failed(self) -> int:
        return len(self.venue_errors)


@dataclass(frozen=True)
class TriangularScanResult:
    """Outcome of pricing every base -> X -> Y -> base route."""
    base: str
    opportunities: Tuple[Opportunity, ...]
    routes_priced: int
    venue_errors: Tuple[VenueError, ...]
    scan_time_ms: float

    @property
    def venues_failed(self) -> int:
        return len(self.venue_errors)


@dataclass(frozen=True)
class MultiScanResult:
    """Outcome of scanning several tokens."""
    results: Dict[str, ScanResult]
    errors: Dict[str, str]
    top_opportunities: List[Opportunity]
    total_opportunities: int
    scan_time_ms: float
