"""Price/liquidity feed contract and venue registry."""
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..core.models import PairQuote, PoolState, PriceQuote

# Reference asset prices are quoted in
REFERENCE_ASSET = "USDC"


class Venue(BaseModel):
    """A DEX deployment on one network."""
    model_config = ConfigDict(frozen=True)

    name: str
    network: str
    protocol: str
    fee_rate: Decimal = Field(Decimal("0.003"), ge=0, lt=1)
    reliability: float = Field(0.9, ge=0.0, le=1.0)

    @property
    def key(self) -> Tuple[str, str]:
        return self.name, self.network


class TokenConfig(BaseModel):
    """A monitored token and the networks it trades on."""
    model_config = ConfigDict(frozen=True)

    symbol: str
    priority: str = "MEDIUM"
    networks: Tuple[str, ...]


DEFAULT_VENUES: Dict[str, List[Venue]] = {
    "ethereum": [
        Venue(name="Uniswap V2", network="ethereum", protocol="uniswap_v2", fee_rate=Decimal("0.003"), reliability=0.95),
        Venue(name="Uniswap V3", network="ethereum", protocol="uniswap_v3", fee_rate=Decimal("0.0005"), reliability=0.98),
        Venue(name="SushiSwap", network="ethereum", protocol="sushiswap", fee_rate=Decimal("0.003"), reliability=0.90),
        Venue(name="Balancer", network="ethereum", protocol="balancer", fee_rate=Decimal("0.003"), reliability=0.88),
        Venue(name="Curve", network="ethereum", protocol="curve", fee_rate=Decimal("0.0004"), reliability=0.93),
    ],
    "polygon": [
        Venue(name="QuickSwap", network="polygon", protocol="quickswap", fee_rate=Decimal("0.003"), reliability=0.92),
        Venue(name="SushiSwap", network="polygon", protocol="sushiswap", fee_rate=Decimal("0.003"), reliability=0.90),
        Venue(name="Uniswap V3", network="polygon", protocol="uniswap_v3", fee_rate=Decimal("0.0005"), reliability=0.95),
    ],
    "bsc": [
        Venue(name="PancakeSwap", network="bsc", protocol="pancakeswap", fee_rate=Decimal("0.0025"), reliability=0.93),
        Venue(name="BiSwap", network="bsc", protocol="biswap", fee_rate=Decimal("0.001"), reliability=0.85),
    ],
    "arbitrum": [
        Venue(name="Uniswap V3", network="arbitrum", protocol="uniswap_v3", fee_rate=Decimal("0.0005"), reliability=0.96),
        Venue(name="SushiSwap", network="arbitrum", protocol="sushiswap", fee_rate=Decimal("0.003"), reliability=0.91),
        Venue(name="Balancer", network="arbitrum", protocol="balancer", fee_rate=Decimal("0.003"), reliability=0.89),
    ],
}

MONITORED_TOKENS: Dict[str, TokenConfig] = {
    "WETH": TokenConfig(symbol="WETH", priority="HIGH", networks=("ethereum", "polygon", "arbitrum")),
    "USDC": TokenConfig(symbol="USDC", priority="HIGH", networks=("ethereum", "polygon", "bsc", "arbitrum")),
    "USDT": TokenConfig(symbol="USDT", priority="HIGH", networks=("ethereum", "polygon", "bsc", "arbitrum")),
    "WBTC": TokenConfig(symbol="WBTC", priority="MEDIUM", networks=("ethereum", "polygon", "arbitrum")),
    "DAI": TokenConfig(symbol="DAI", priority="MEDIUM", networks=("ethereum", "polygon", "arbitrum")),
    "LINK": TokenConfig(symbol="LINK", priority="MEDIUM", networks=("ethereum", "polygon", "bsc", "arbitrum")),
}


class QuoteFeed(ABC):
    """External collaborator supplying quotes and pool snapshots."""

    @abstractmethod
    async def get_quotes(self, token: str, venues: Sequence[Venue]) -> List[PriceQuote]:
        """Current price of ``token`` on each of ``venues`` that lists it."""

    @abstractmethod
    async def get_pool_state(
        self,
        venue: str,
        pair: Tuple[str, str],
        network: Optional[str] = None
    ) -> PoolState:
        """Pool snapshot for ``pair`` (token_in, token_out) on ``venue``."""

    @abstractmethod
    async def get_pair_quotes(self, base: str, quote: str, venues: Sequence[Venue]) -> List[PairQuote]:
        """Exchange rate from ``base`` to ``quote`` on each venue listing the pair."""

    async def close(self) -> None:
        """Release any held connections."""
