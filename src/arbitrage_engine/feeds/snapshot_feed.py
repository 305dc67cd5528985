"""In-memory feed replaying pre-loaded market snapshots."""
import asyncio
import logging
from collections import Counter, defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..core.models import PairQuote, PoolState, PriceQuote
from ..exceptions import ExternalCollaboratorError
from .base import QuoteFeed, Venue

logger = logging.getLogger(__name__)

PoolKey = Tuple[str, str, str, str]  # venue, network, token_in, token_out


class SnapshotQuoteFeed(QuoteFeed):
    """
    Serves quotes, pair quotes and pool states captured elsewhere.

    Individual venues can be made to fail or answer slowly, which is how
    partial-failure handling is replayed.
    """

    def __init__(
        self,
        quotes: Optional[Dict[str, Iterable[PriceQuote]]] = None,
        pools: Optional[Dict[PoolKey, PoolState]] = None,
        pair_quotes: Optional[Iterable[PairQuote]] = None
    ):
        self._quotes: Dict[str, List[PriceQuote]] = defaultdict(list)
        for token, items in (quotes or {}).items():
            self._quotes[token.upper()].extend(items)
        self._pools: Dict[PoolKey, PoolState] = dict(pools or {})
        self._pairs: List[PairQuote] = list(pair_quotes or [])
        self._failures: Dict[str, Exception] = {}
        self._delays: Dict[str, float] = {}
        self.calls: Counter = Counter()

    def add_quote(self, token: str, quote: PriceQuote) -> None:
        self._quotes[token.upper()].append(quote)

    def add_pool(self, venue: str, network: str, pair: Tuple[str, str], pool: PoolState) -> None:
        self._pools[(venue, network, pair[0].upper(), pair[1].upper())] = pool

    def add_pair_quote(self, quote: PairQuote) -> None:
        self._pairs.append(quote)

    def fail_venue(self, venue: str, error: Optional[Exception] = None) -> None:
        self._failures[venue] = error or ExternalCollaboratorError(
            "venue unavailable", stage="fetch", venue=venue
        )

    def delay_venue(self, venue: str, seconds: float) -> None:
        self._delays[venue] = seconds

    async def _before_call(self, venues: Sequence[Venue]) -> None:
        for venue in venues:
            delay = self._delays.get(venue.name)
            if delay:
                await asyncio.sleep(delay)
            error = self._failures.get(venue.name)
            if error is not None:
                raise error

    async def get_quotes(self, token: str, venues: Sequence[Venue]) -> List[PriceQuote]:
        self.calls["get_quotes"] += 1
        await self._before_call(venues)
        wanted = {venue.key for venue in venues}
        return [q for q in self._quotes.get(token.upper(), []) if (q.venue, q.network) in wanted]

    async def get_pool_state(
        self,
        venue: str,
        pair: Tuple[str, str],
        network: Optional[str] = None
    ) -> PoolState:
        self.calls["get_pool_state"] += 1
        error = self._failures.get(venue)
        if error is not None:
            raise error

        token_in, token_out = pair[0].upper(), pair[1].upper()
        for (pool_venue, pool_network, pool_in, pool_out), pool in self._pools.items():
            if pool_venue != venue or (pool_in, pool_out) != (token_in, token_out):
                continue
            if network is None or pool_network == network:
                return pool

        raise ExternalCollaboratorError(
            f"No pool for {token_in}/{token_out} on {network or 'any network'}",
            stage="fetch",
            venue=venue,
        )

    async def get_pair_quotes(self, base: str, quote: str, venues: Sequence[Venue]) -> List[PairQuote]:
        self.calls["get_pair_quotes"] += 1
        await self._before_call(venues)
        wanted = {venue.key for venue in venues}
        return [
            q for q in self._pairs
            if q.base.upper() == base.upper() and q.quote.upper() == quote.upper()
            and (q.venue, q.network) in wanted
        ]
