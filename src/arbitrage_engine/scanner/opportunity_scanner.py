"""
Multi-venue arbitrage opportunity scanner.

One scan cycle per token:
    fetch -> pairwise compare -> filter -> rank -> validate -> enrich

Quote fetching fans out one task per venue. A venue that errors or times
out is recorded and dropped; the cycle continues with the venues that
answered. Quotes older than the freshness bound never form opportunities.
"""
import asyncio
import logging
import time
from dataclasses import replace
from decimal import Decimal
from itertools import combinations
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..cache.snapshot_cache import SnapshotCache, quote_cache_key
from ..config.analysis_config import ScannerConfig
from ..core.models import (
    Complexity,
    MultiScanResult,
    Opportunity,
    OpportunityMetadata,
    OpportunityType,
    OpportunityValidation,
    PairQuote,
    PriceQuote,
    ProfitEstimate,
    ScanResult,
    TriangularScanResult,
    VenueError,
)
from ..core.precision import HUNDRED, ZERO, quantize, require_positive
from ..exceptions import ExternalCollaboratorTimeout, InvalidInput
from ..feeds.base import DEFAULT_VENUES, MONITORED_TOKENS, QuoteFeed, TokenConfig, Venue
from .triangular import best_leg, candidate_routes, compose_route

logger = logging.getLogger(__name__)

COMPLEXITY_PENALTY = {
    Complexity.LOW: 1.0,
    Complexity.MEDIUM: 0.85,
    Complexity.HIGH: 0.7,
}


def encode_quotes(quotes: Sequence[PriceQuote]) -> List[Dict[str, Any]]:
    return [q.model_dump(mode="json") for q in quotes]


def decode_quotes(data: List[Dict[str, Any]]) -> Tuple[PriceQuote, ...]:
    return tuple(PriceQuote.model_validate(item) for item in data)


class OpportunityScanner:
    """Finds simple and triangular arbitrage across venues and networks."""

    def __init__(
        self,
        feed: QuoteFeed,
        config: Optional[ScannerConfig] = None,
        venues: Optional[Dict[str, List[Venue]]] = None,
        tokens: Optional[Dict[str, TokenConfig]] = None,
        cache: Optional[SnapshotCache] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize the scanner.

        Args:
            feed: Quote source
            config: Scanning thresholds
            venues: Venues per network (defaults to the built-in registry)
            tokens: Monitored tokens (defaults to the built-in registry)
            cache: Quote snapshot cache; a memory cache is created if omitted
            clock: Time source in epoch seconds, used for quote freshness
        """
        self.feed = feed
        self.config = config or ScannerConfig()
        self.venues = venues or DEFAULT_VENUES
        self.tokens = tokens or MONITORED_TOKENS
        self.clock = clock
        self.cache = cache or SnapshotCache(
            ttl_seconds=self.config.cache_ttl_seconds,
            encoder=encode_quotes,
            decoder=decode_quotes,
            clock=clock,
        )

        self._stats = {
            "scans": 0,
            "triangular_scans": 0,
            "opportunities_found": 0,
            "venue_failures": 0,
            "stale_quotes_excluded": 0,
            "cache_hits": 0,
        }

    def networks_for(self, token: str) -> Tuple[str, ...]:
        token_config = self.tokens.get(token.upper())
        if token_config is None:
            raise InvalidInput(f"Token {token} is not monitored", stage="scan")
        return token_config.networks

    def venues_for(self, networks: Sequence[str]) -> List[Venue]:
        return [venue for network in networks for venue in self.venues.get(network, [])]

    async def _call_venue(self, venue: Venue, call) -> Any:
        try:
            return await asyncio.wait_for(call, timeout=self.config.venue_timeout_seconds)
        except asyncio.TimeoutError as e:
            raise ExternalCollaboratorTimeout(
                f"No answer within {self.config.venue_timeout_seconds}s",
                timeout_seconds=self.config.venue_timeout_seconds,
                stage="fetch",
                venue=venue.name,
            ) from e

    async def _fan_out(self, venues: Sequence[Venue], make_call) -> Tuple[List[Any], List[VenueError]]:
        """Run one call per venue; failures become ``VenueError`` records."""
        results = await asyncio.gather(
            *(self._call_venue(venue, make_call(venue)) for venue in venues),
            return_exceptions=True,
        )

        items: List[Any] = []
        errors: List[VenueError] = []
        for venue, result in zip(venues, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                kind = getattr(result, "kind", type(result).__name__)
                errors.append(VenueError(venue.name, venue.network, kind, str(result)))
                logger.warning(f"Venue {venue.name}@{venue.network} dropped: {result}")
            else:
                items.extend(result)

        self._stats["venue_failures"] += len(errors)
        return items, errors

    async def fetch_quotes(
        self,
        token: str,
        networks: Sequence[str]
    ) -> Tuple[Tuple[PriceQuote, ...], Tuple[VenueError, ...], bool]:
        """
        Quotes for ``token`` on every venue of ``networks``.

        Returns:
            (quotes, venue errors, served from cache)
        """
        key = quote_cache_key(token, networks)
        cached = await self.cache.get(key)
        if cached is not None:
            self._stats["cache_hits"] += 1
            return tuple(cached.value), (), True

        venues = self.venues_for(networks)
        quotes, errors = await self._fan_out(
            venues, lambda venue: self.feed.get_quotes(token, [venue])
        )
        quotes = tuple(quotes)
        # Partial cycles are not cached so missing venues are retried next time
        if quotes and not errors:
            await self.cache.set(key, quotes)
        return quotes, tuple(errors), False

    def _split_fresh(self, quotes: Sequence[PriceQuote]) -> Tuple[List[PriceQuote], int]:
        now = self.clock()
        fresh = [q for q in quotes if q.is_fresh(self.config.max_quote_age_seconds, now)]
        stale = len(quotes) - len(fresh)
        if stale:
            logger.warning(f"Excluded {stale} quotes older than {self.config.max_quote_age_seconds}s")
        self._stats["stale_quotes_excluded"] += stale
        return fresh, stale

    async def scan_token(
        self,
        token: str,
        amount,
        networks: Optional[Sequence[str]] = None
    ) -> ScanResult:
        """
        Run one scan cycle for ``token``.

        Raises:
            InvalidInput: for an unknown token or non-positive amount
        """
        started = time.perf_counter()
        size = require_positive(amount, "amount", stage="scan")
        networks = tuple(networks) if networks else self.networks_for(token)
        self._stats["scans"] += 1

        quotes, errors, from_cache = await self.fetch_quotes(token, networks)
        fresh, stale = self._split_fresh(quotes)

        opportunities = self.detect_opportunities(token.upper(), fresh, size)
        opportunities = self.filter_and_rank(opportunities)
        opportunities = self.validate_opportunities(opportunities)
        opportunities = self.enrich_opportunities(opportunities)
        self._stats["opportunities_found"] += len(opportunities)

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"Scanned {token} on {len(networks)} networks: {len(fresh)} fresh quotes, "
            f"{len(errors)} venue errors, {len(opportunities)} opportunities in {elapsed_ms:.1f}ms"
        )

        return ScanResult(
            token=token.upper(),
            opportunities=tuple(opportunities),
            quotes_received=len(quotes),
            stale_quotes=stale,
            venue_errors=errors,
            scan_time_ms=elapsed_ms,
            from_cache=from_cache,
            market_conditions=self.assess_market_conditions(fresh),
        )

    async def scan_multiple_tokens(
        self,
        tokens: Sequence[str],
        amount,
        concurrent: bool = True
    ) -> MultiScanResult:
        """Scan several tokens; a failing token is reported without affecting the others."""
        started = time.perf_counter()
        semaphore = asyncio.Semaphore(self.config.max_concurrent_scans)

        async def scan_one(token: str) -> ScanResult:
            async with semaphore:
                return await self.scan_token(token, amount)

        results: Dict[str, ScanResult] = {}
        errors: Dict[str, str] = {}

        if concurrent:
            outcomes = await asyncio.gather(*(scan_one(t) for t in tokens), return_exceptions=True)
        else:
            outcomes = []
            for token in tokens:
                try:
                    outcomes.append(await self.scan_token(token, amount))
                except Exception as e:
                    outcomes.append(e)

        for token, outcome in zip(tokens, outcomes):
            if isinstance(outcome, Exception):
                logger.error(f"Scan of {token} failed: {outcome}")
                errors[token.upper()] = str(outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                results[token.upper()] = outcome

        all_opportunities = [opp for result in results.values() for opp in result.opportunities]
        top = sorted(all_opportunities, key=lambda o: o.profit.net_profit_percentage, reverse=True)

        return MultiScanResult(
            results=results,
            errors=errors,
            top_opportunities=top[:self.config.max_aggregate_results],
            total_opportunities=len(all_opportunities),
            scan_time_ms=(time.perf_counter() - started) * 1000,
        )

    def detect_opportunities(self, token: str, quotes: Sequence[PriceQuote], amount: Decimal) -> List[Opportunity]:
        """Compare every pair of quotes and keep those profitable after both venue fees."""
        opportunities: List[Opportunity] = []
        gate = self.config.min_profit_threshold * HUNDRED

        for quote_a, quote_b in combinations(quotes, 2):
            if quote_a.price == quote_b.price:
                continue
            lower = min(quote_a.price, quote_b.price)
            spread_pct = abs(quote_a.price - quote_b.price) / lower * HUNDRED
            if spread_pct < gate:
                continue

            buy, sell = (quote_a, quote_b) if quote_a.price < quote_b.price else (quote_b, quote_a)
            gross = (sell.price - buy.price) * amount
            fees = (buy.fee_rate + sell.fee_rate) * amount * sell.price
            net = gross - fees
            net_pct = net / (buy.price * amount) * HUNDRED
            if net_pct <= 0:
                continue

            cross_chain = buy.network != sell.network
            opportunities.append(Opportunity(
                id=f"{token}:{buy.venue}@{buy.network}->{sell.venue}@{sell.network}",
                type=OpportunityType.SIMPLE,
                token=token,
                amount=amount,
                spread_percentage=quantize(spread_pct),
                profit=ProfitEstimate(
                    gross_profit=quantize(gross),
                    fees=quantize(fees),
                    net_profit=quantize(net),
                    net_profit_percentage=quantize(net_pct),
                ),
                cross_chain=cross_chain,
                complexity=Complexity.MEDIUM if cross_chain else Complexity.LOW,
                buy_quote=buy,
                sell_quote=sell,
            ))

        return opportunities

    def filter_and_rank(self, opportunities: Sequence[Opportunity]) -> List[Opportunity]:
        """Apply the net-profit and spread floors, then rank by net profit."""
        min_profit_pct = self.config.min_profit_threshold * HUNDRED
        min_spread_pct = Decimal(self.config.min_spread_bps) / HUNDRED

        kept = [
            opp for opp in opportunities
            if opp.profit.net_profit_percentage >= min_profit_pct
            and opp.spread_percentage >= min_spread_pct
        ]
        kept.sort(key=lambda o: o.profit.net_profit_percentage, reverse=True)

        return [
            replace(opp, rank=index + 1, score=self.opportunity_score(opp), risk_level=self.opportunity_risk(opp))
            for index, opp in enumerate(kept)
        ]

    def validate_opportunities(self, opportunities: Sequence[Opportunity]) -> List[Opportunity]:
        validated = []
        for opp in opportunities:
            min_liquidity = min(self._liquidities(opp), default=ZERO)
            liquidity_valid = min_liquidity >= self.config.min_liquidity_usd
            exec_time = self.estimate_execution_time(opp)
            validated.append(replace(opp, validation=OpportunityValidation(
                liquidity_valid=liquidity_valid,
                is_executable=liquidity_valid and exec_time <= self.config.max_execution_time_ms,
                estimated_execution_time_ms=exec_time,
                min_liquidity_usd=min_liquidity,
            )))
        return validated

    def enrich_opportunities(self, opportunities: Sequence[Opportunity]) -> List[Opportunity]:
        enriched = []
        for opp in opportunities:
            reliabilities = self._reliabilities(opp)
            executable = opp.validation is not None and opp.validation.is_executable
            confidence = min(reliabilities) if reliabilities else 0.0
            if not executable:
                confidence *= 0.5
            enriched.append(replace(opp, metadata=OpportunityMetadata(
                confidence=round(confidence, 6),
                urgency=self._urgency(opp),
                recommendation=self._recommendation(opp, executable),
                tags=self._tags(opp, reliabilities),
            )))
        return enriched

    def opportunity_score(self, opp: Opportunity) -> float:
        """min(net%/5, 1) x mean venue reliability x complexity penalty."""
        profit_score = min(float(opp.profit.net_profit_percentage) / 5.0, 1.0)
        reliabilities = self._reliabilities(opp)
        reliability = sum(reliabilities) / len(reliabilities) if reliabilities else 0.0
        return round(profit_score * reliability * COMPLEXITY_PENALTY[opp.complexity], 6)

    def opportunity_risk(self, opp: Opportunity) -> str:
        score = Decimal("0")
        if opp.cross_chain:
            score += Decimal("0.3")
        reliabilities = self._reliabilities(opp)
        if reliabilities and min(reliabilities) < 0.9:
            score += Decimal("0.2")
        if opp.profit.net_profit_percentage < 1:
            score += Decimal("0.2")

        if score <= Decimal("0.3"):
            return "LOW"
        if score <= Decimal("0.6"):
            return "MEDIUM"
        return "HIGH"

    def estimate_execution_time(self, opp: Opportunity) -> int:
        time_ms = self.config.base_execution_time_ms
        if opp.cross_chain:
            time_ms *= self.config.cross_chain_time_multiplier
        if opp.complexity == Complexity.HIGH:
            time_ms *= self.config.high_complexity_time_multiplier
        return time_ms

    def assess_market_conditions(self, quotes: Sequence[PriceQuote]) -> Dict[str, Any]:
        """Price dispersion of each venue across the networks it is deployed on."""
        by_venue: Dict[str, List[Decimal]] = {}
        for quote in quotes:
            by_venue.setdefault(quote.venue, []).append(quote.price)

        variations = [
            (max(prices) - min(prices)) / min(prices)
            for prices in by_venue.values() if len(prices) > 1
        ]
        average = sum(variations, ZERO) / len(variations) if variations else ZERO

        if average > Decimal("0.02"):
            volatility = "HIGH"
        elif average > Decimal("0.01"):
            volatility = "MEDIUM"
        else:
            volatility = "LOW"

        return {
            "volatility": volatility,
            "average_variation_pct": quantize(average * HUNDRED),
            "venues_quoted": len(by_venue),
        }

    async def scan_triangular(
        self,
        base: str,
        intermediates: Sequence[str],
        amount,
        networks: Optional[Sequence[str]] = None
    ) -> TriangularScanResult:
        """
        Price every route base -> X -> Y -> base over the intermediates.

        A route is kept only if the compounded output after all three
        legs' fees exceeds the input amount. Venues that fail while a leg
        is quoted are reported in ``venue_errors``.
        """
        started = time.perf_counter()
        size = require_positive(amount, "amount", stage="scan")
        networks = tuple(networks) if networks else self.networks_for(base)
        venues = self.venues_for(networks)
        self._stats["triangular_scans"] += 1

        leg_cache: Dict[Tuple[str, str], Optional[PairQuote]] = {}
        venue_errors: List[VenueError] = []

        async def leg(token_in: str, token_out: str) -> Optional[PairQuote]:
            if (token_in, token_out) not in leg_cache:
                quotes, errors = await self._fan_out(
                    venues, lambda venue: self.feed.get_pair_quotes(token_in, token_out, [venue])
                )
                venue_errors.extend(errors)
                now = self.clock()
                fresh = [q for q in quotes if q.is_fresh(self.config.max_quote_age_seconds, now)]
                self._stats["stale_quotes_excluded"] += len(quotes) - len(fresh)
                leg_cache[(token_in, token_out)] = best_leg(fresh)
            return leg_cache[(token_in, token_out)]

        opportunities: List[Opportunity] = []
        routes = candidate_routes(base, intermediates)
        for route in routes:
            legs = []
            for token_in, token_out in zip(route, route[1:]):
                quote = await leg(token_in, token_out)
                if quote is None:
                    break
                legs.append(quote)
            if len(legs) != 3:
                logger.debug(f"Route {'->'.join(route)} has an unquoted leg")
                continue

            priced = compose_route(route, legs, size)
            if not priced.is_profitable:
                continue

            opportunities.append(Opportunity(
                id=f"{'->'.join(route)}:" + ",".join(f"{q.venue}@{q.network}" for q in legs),
                type=OpportunityType.TRIANGULAR,
                token=base.upper(),
                amount=size,
                spread_percentage=priced.spread_percentage,
                profit=ProfitEstimate(
                    gross_profit=quantize(size * (priced.gross_rate - 1)),
                    fees=priced.fees,
                    net_profit=quantize(priced.profit),
                    net_profit_percentage=priced.profit_percentage,
                ),
                cross_chain=len({q.network for q in legs}) > 1,
                complexity=Complexity.HIGH,
                legs=tuple(legs),
                route=route,
            ))

        ranked = self.filter_and_rank(opportunities)
        ranked = self.validate_opportunities(ranked)
        ranked = self.enrich_opportunities(ranked)
        self._stats["opportunities_found"] += len(ranked)

        return TriangularScanResult(
            base=base.upper(),
            opportunities=tuple(ranked),
            routes_priced=len(routes),
            venue_errors=tuple(venue_errors),
            scan_time_ms=(time.perf_counter() - started) * 1000,
        )

    @staticmethod
    def _reliabilities(opp: Opportunity) -> List[float]:
        if opp.type == OpportunityType.TRIANGULAR:
            return [leg.reliability for leg in opp.legs]
        return [opp.buy_quote.reliability, opp.sell_quote.reliability]

    @staticmethod
    def _liquidities(opp: Opportunity) -> List[Decimal]:
        if opp.type == OpportunityType.TRIANGULAR:
            return [leg.liquidity_usd for leg in opp.legs]
        return [opp.buy_quote.liquidity_usd, opp.sell_quote.liquidity_usd]

    @staticmethod
    def _urgency(opp: Opportunity) -> str:
        net_pct = opp.profit.net_profit_percentage
        if net_pct >= 2:
            return "HIGH"
        if net_pct >= 1:
            return "MEDIUM"
        return "LOW"

    @staticmethod
    def _recommendation(opp: Opportunity, executable: bool) -> str:
        if not executable:
            return "SKIP"
        if opp.risk_level == "LOW":
            return "EXECUTE"
        if opp.risk_level == "MEDIUM":
            return "EXECUTE_WITH_CAUTION"
        return "MONITOR"

    @staticmethod
    def _tags(opp: Opportunity, reliabilities: List[float]) -> Tuple[str, ...]:
        tags = [opp.type.value, "cross_chain" if opp.cross_chain else "same_chain"]
        if opp.profit.net_profit_percentage >= 2:
            tags.append("high_profit")
        if reliabilities and min(reliabilities) >= 0.95:
            tags.append("high_reliability")
        if opp.validation is not None and not opp.validation.liquidity_valid:
            tags.append("low_liquidity")
        return tuple(tags)

    def get_scanner_stats(self) -> Dict[str, Any]:
        return {
            "supported_networks": sorted(self.venues.keys()),
            "total_venues": sum(len(v) for v in self.venues.values()),
            "monitored_tokens": sorted(self.tokens.keys()),
            "config": {
                "min_profit_threshold": str(self.config.min_profit_threshold),
                "min_spread_bps": self.config.min_spread_bps,
                "max_quote_age_seconds": self.config.max_quote_age_seconds,
                "min_liquidity_usd": str(self.config.min_liquidity_usd),
                "max_execution_time_ms": self.config.max_execution_time_ms,
            },
            "cache": self.cache.get_cache_stats(),
            **self._stats,
        }
