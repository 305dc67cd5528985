"""Unit tests for OpportunityScanner."""
import pytest
from decimal import Decimal

from arbitrage_engine.config.analysis_config import ScannerConfig
from arbitrage_engine.core.models import Complexity, OpportunityType, PairQuote, PriceQuote
from arbitrage_engine.exceptions import InvalidInput
from arbitrage_engine.feeds.base import TokenConfig, Venue
from arbitrage_engine.feeds.snapshot_feed import SnapshotQuoteFeed
from arbitrage_engine.scanner import OpportunityScanner, candidate_routes, decode_quotes, encode_quotes

NOW = 1_700_000_000.0

VENUES = {
    "ethereum": [
        Venue(name="Uniswap V2", network="ethereum", protocol="uniswap_v2", reliability=0.95),
        Venue(name="SushiSwap", network="ethereum", protocol="sushiswap", reliability=0.90),
    ],
    "polygon": [
        Venue(name="QuickSwap", network="polygon", protocol="quickswap", reliability=0.92),
    ],
}

TOKENS = {
    "WETH": TokenConfig(symbol="WETH", priority="HIGH", networks=("ethereum", "polygon")),
}


def make_quote(venue, network, price, reliability, age=5.0, protocol="uniswap_v2"):
    return PriceQuote(
        venue=venue,
        network=network,
        protocol=protocol,
        price=Decimal(price),
        reliability=reliability,
        liquidity_usd=Decimal("500000"),
        timestamp=NOW - age,
    )


def make_pair(base, quote, rate, venue="Uniswap V2", age=5.0):
    return PairQuote(
        base=base,
        quote=quote,
        venue=venue,
        network="ethereum",
        rate=Decimal(rate),
        liquidity_usd=Decimal("1000000"),
        timestamp=NOW - age,
    )


@pytest.fixture
def feed():
    return SnapshotQuoteFeed(quotes={
        "WETH": [
            make_quote("Uniswap V2", "ethereum", "2000", 0.95),
            make_quote("SushiSwap", "ethereum", "2030", 0.90, protocol="sushiswap"),
            make_quote("QuickSwap", "polygon", "2060", 0.92, protocol="quickswap"),
        ],
    })


@pytest.fixture
def scanner(feed):
    return OpportunityScanner(feed, ScannerConfig(), venues=VENUES, tokens=TOKENS, clock=lambda: NOW)


class TestScanToken:
    """Test one scan cycle."""

    @pytest.mark.asyncio
    async def test_finds_and_ranks_opportunities(self, scanner):
        result = await scanner.scan_token("weth", 1)

        assert result.token == "WETH"
        assert result.quotes_received == 3
        assert result.venue_errors == ()
        assert [o.rank for o in result.opportunities] == [1, 2, 3]

        best = result.opportunities[0]
        assert best.id == "WETH:Uniswap V2@ethereum->QuickSwap@polygon"
        assert best.type == OpportunityType.SIMPLE
        assert best.cross_chain is True
        assert best.complexity == Complexity.MEDIUM
        assert best.profit.gross_profit == Decimal("60")
        assert best.profit.fees == Decimal("12.36")
        assert best.profit.net_profit == Decimal("47.64")
        assert best.profit.net_profit_percentage == Decimal("2.382")
        assert best.risk_level == "LOW"
        assert best.score == pytest.approx(0.4764 * 0.935 * 0.85, abs=1e-6)

    @pytest.mark.asyncio
    async def test_validation_and_metadata(self, scanner):
        result = await scanner.scan_token("WETH", 1)
        best, same_chain, third = result.opportunities

        assert best.validation.is_executable is True
        assert best.validation.estimated_execution_time_ms == 90000
        assert best.metadata.confidence == 0.92
        assert best.metadata.urgency == "HIGH"
        assert best.metadata.recommendation == "EXECUTE"
        assert best.metadata.tags == ("simple", "cross_chain", "high_profit")

        assert same_chain.id == "WETH:Uniswap V2@ethereum->SushiSwap@ethereum"
        assert same_chain.validation.estimated_execution_time_ms == 30000
        assert same_chain.metadata.urgency == "LOW"

        assert third.risk_level == "MEDIUM"
        assert third.metadata.recommendation == "EXECUTE_WITH_CAUTION"

    @pytest.mark.asyncio
    async def test_unprofitable_pairs_dropped(self, feed):
        scanner = OpportunityScanner(
            feed,
            ScannerConfig(min_profit_threshold=Decimal("0.02")),
            venues=VENUES, tokens=TOKENS, clock=lambda: NOW,
        )
        result = await scanner.scan_token("WETH", 1)

        assert [o.id for o in result.opportunities] == ["WETH:Uniswap V2@ethereum->QuickSwap@polygon"]

    @pytest.mark.asyncio
    async def test_failed_venue_is_dropped(self, feed, scanner):
        feed.fail_venue("SushiSwap")

        result = await scanner.scan_token("WETH", 1)

        assert len(result.venue_errors) == 1
        error = result.venue_errors[0]
        assert error.venue == "SushiSwap"
        assert error.kind == "external_error"
        assert [o.id for o in result.opportunities] == ["WETH:Uniswap V2@ethereum->QuickSwap@polygon"]

    @pytest.mark.asyncio
    async def test_slow_venue_times_out(self, feed):
        feed.delay_venue("QuickSwap", 1.0)
        scanner = OpportunityScanner(
            feed,
            ScannerConfig(venue_timeout_seconds=0.05),
            venues=VENUES, tokens=TOKENS, clock=lambda: NOW,
        )

        result = await scanner.scan_token("WETH", 1)

        assert [e.kind for e in result.venue_errors] == ["external_timeout"]
        assert len(result.opportunities) == 1
        assert scanner.get_scanner_stats()["venue_failures"] == 1

    @pytest.mark.asyncio
    async def test_stale_quotes_excluded(self):
        feed = SnapshotQuoteFeed(quotes={
            "WETH": [
                make_quote("Uniswap V2", "ethereum", "2000", 0.95),
                make_quote("SushiSwap", "ethereum", "2030", 0.90, age=60),
                make_quote("QuickSwap", "polygon", "2060", 0.92),
            ],
        })
        scanner = OpportunityScanner(feed, venues=VENUES, tokens=TOKENS, clock=lambda: NOW)

        result = await scanner.scan_token("WETH", 1)

        assert result.stale_quotes == 1
        assert all("SushiSwap" not in o.id for o in result.opportunities)
        assert len(result.opportunities) == 1

    @pytest.mark.asyncio
    async def test_second_scan_served_from_cache(self, feed, scanner):
        first = await scanner.scan_token("WETH", 1)
        calls = feed.calls["get_quotes"]
        second = await scanner.scan_token("WETH", 1)

        assert first.from_cache is False
        assert second.from_cache is True
        assert feed.calls["get_quotes"] == calls == 3
        assert [o.id for o in second.opportunities] == [o.id for o in first.opportunities]

    @pytest.mark.asyncio
    async def test_partial_cycle_not_cached(self, feed, scanner):
        feed.fail_venue("SushiSwap")

        first = await scanner.scan_token("WETH", 1)
        second = await scanner.scan_token("WETH", 1)

        assert second.from_cache is False
        assert [e.venue for e in first.venue_errors] == ["SushiSwap"]
        assert [e.venue for e in second.venue_errors] == ["SushiSwap"]
        assert feed.calls["get_quotes"] == 6

    @pytest.mark.asyncio
    async def test_analysis_payload_averages_venue_fees(self):
        feed = SnapshotQuoteFeed(quotes={
            "WETH": [
                make_quote("Uniswap V2", "ethereum", "2000", 0.95).model_copy(update={"fee_rate": Decimal("0.0005")}),
                make_quote("QuickSwap", "polygon", "2060", 0.92, protocol="quickswap"),
            ],
        })
        scanner = OpportunityScanner(feed, venues=VENUES, tokens=TOKENS, clock=lambda: NOW)

        result = await scanner.scan_token("WETH", 1)
        payload = result.opportunities[0].to_analysis_payload()

        assert payload["buy"]["fee_rate"] == Decimal("0.0005")
        assert payload["protocol_fee_rate"] == Decimal("0.00175")

    @pytest.mark.asyncio
    async def test_invalid_inputs(self, scanner):
        with pytest.raises(InvalidInput):
            await scanner.scan_token("DOGE", 1)
        with pytest.raises(InvalidInput):
            await scanner.scan_token("WETH", 0)


class TestScanMultiple:
    """Test multi-token aggregation."""

    @pytest.mark.asyncio
    async def test_failing_token_does_not_affect_others(self, scanner):
        result = await scanner.scan_multiple_tokens(["WETH", "doge"], 1)

        assert set(result.results) == {"WETH"}
        assert set(result.errors) == {"DOGE"}
        assert result.total_opportunities == 3
        assert result.top_opportunities[0].rank == 1

    @pytest.mark.asyncio
    async def test_sequential_mode(self, scanner):
        result = await scanner.scan_multiple_tokens(["WETH"], 1, concurrent=False)
        assert result.total_opportunities == 3


class TestMarketConditions:
    """Test dispersion of a venue across networks."""

    def test_dispersion_levels(self, scanner):
        calm = [make_quote("SushiSwap", "ethereum", "2000", 0.9), make_quote("SushiSwap", "polygon", "2010", 0.9)]
        wild = [make_quote("SushiSwap", "ethereum", "2000", 0.9), make_quote("SushiSwap", "polygon", "2060", 0.9)]

        assert scanner.assess_market_conditions(calm)["volatility"] == "LOW"
        conditions = scanner.assess_market_conditions(wild)
        assert conditions["volatility"] == "HIGH"
        assert conditions["average_variation_pct"] == Decimal("3")
        assert conditions["venues_quoted"] == 1

    def test_quote_codec(self):
        quotes = (make_quote("Uniswap V2", "ethereum", "2000.25", 0.95),)
        assert decode_quotes(encode_quotes(quotes)) == quotes


class TestTriangular:
    """Test base -> X -> Y -> base routes."""

    def test_candidate_routes(self):
        routes = candidate_routes("usdc", ["WETH", "DAI", "usdc"])
        assert routes == [("USDC", "WETH", "DAI", "USDC"), ("USDC", "DAI", "WETH", "USDC")]

    @pytest.mark.asyncio
    async def test_profitable_cycle_found(self):
        feed = SnapshotQuoteFeed(pair_quotes=[
            make_pair("USDC", "WETH", "0.0005"),
            make_pair("USDC", "WETH", "0.00049", venue="SushiSwap"),
            make_pair("WETH", "DAI", "2040"),
            make_pair("DAI", "USDC", "1"),
            make_pair("USDC", "DAI", "1"),
            make_pair("DAI", "WETH", "0.00049"),
            make_pair("WETH", "USDC", "2000"),
        ])
        scanner = OpportunityScanner(feed, venues=VENUES, tokens=TOKENS, clock=lambda: NOW)

        found = await scanner.scan_triangular("USDC", ["WETH", "DAI"], 1000, networks=["ethereum"])

        assert found.base == "USDC"
        assert found.routes_priced == 2
        assert found.venue_errors == ()
        assert len(found.opportunities) == 1
        opp = found.opportunities[0]
        assert opp.type == OpportunityType.TRIANGULAR
        assert opp.route == ("USDC", "WETH", "DAI", "USDC")
        assert opp.complexity == Complexity.HIGH
        assert opp.legs[0].venue == "Uniswap V2"
        assert opp.spread_percentage == Decimal("2")
        assert opp.profit.net_profit > 0
        assert opp.validation.estimated_execution_time_ms == 60000

    @pytest.mark.asyncio
    async def test_fees_can_erase_cycle(self):
        feed = SnapshotQuoteFeed(pair_quotes=[
            make_pair("USDC", "WETH", "0.0005"),
            make_pair("WETH", "DAI", "2004"),
            make_pair("DAI", "USDC", "1"),
        ])
        scanner = OpportunityScanner(feed, venues=VENUES, tokens=TOKENS, clock=lambda: NOW)

        result = await scanner.scan_triangular("USDC", ["WETH", "DAI"], 1000, networks=["ethereum"])
        assert result.opportunities == ()

    @pytest.mark.asyncio
    async def test_stale_leg_breaks_route(self):
        feed = SnapshotQuoteFeed(pair_quotes=[
            make_pair("USDC", "WETH", "0.0005"),
            make_pair("WETH", "DAI", "2040", age=120),
            make_pair("DAI", "USDC", "1"),
        ])
        scanner = OpportunityScanner(feed, venues=VENUES, tokens=TOKENS, clock=lambda: NOW)

        result = await scanner.scan_triangular("USDC", ["WETH", "DAI"], 1000, networks=["ethereum"])
        assert result.opportunities == ()

    @pytest.mark.asyncio
    async def test_failed_venue_reported_with_routes(self):
        feed = SnapshotQuoteFeed(pair_quotes=[
            make_pair("USDC", "WETH", "0.0005"),
            make_pair("USDC", "WETH", "0.00049", venue="SushiSwap"),
            make_pair("WETH", "DAI", "2040"),
            make_pair("DAI", "USDC", "1"),
            make_pair("USDC", "DAI", "1"),
            make_pair("DAI", "WETH", "0.00049"),
            make_pair("WETH", "USDC", "2000"),
        ])
        feed.fail_venue("SushiSwap")
        scanner = OpportunityScanner(feed, venues=VENUES, tokens=TOKENS, clock=lambda: NOW)

        result = await scanner.scan_triangular("USDC", ["WETH", "DAI"], 1000, networks=["ethereum"])

        # One failure per distinct leg quoted across both routes
        assert result.venues_failed == 6
        assert {(e.venue, e.kind) for e in result.venue_errors} == {("SushiSwap", "external_error")}
        assert [o.route for o in result.opportunities] == [("USDC", "WETH", "DAI", "USDC")]
        assert scanner.get_scanner_stats()["venue_failures"] == 6
