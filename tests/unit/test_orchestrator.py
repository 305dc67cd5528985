"""Unit tests for AnalysisOrchestrator."""
import asyncio
import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, Mock

from arbitrage_engine.config.analysis_config import AnalysisConfig
from arbitrage_engine.core.models import PoolState, TradeDirection
from arbitrage_engine.engine import (
    AlternativeType,
    AnalysisOrchestrator,
    Recommendation,
    ViabilityTier,
    viability_tier
)
from arbitrage_engine.exceptions import ExternalCollaboratorError, InvalidInput
from arbitrage_engine.feeds.snapshot_feed import SnapshotQuoteFeed
from arbitrage_engine.gas.estimator import NetworkGasEstimator
from arbitrage_engine.risk.risk_scorer import RiskLevel

NOW = 1_700_000_000.0


def buy_pool(**overrides):
    """USDC -> WETH pool at 2000 USDC per WETH."""
    pool = {
        "family": "constant_product",
        "venue": "Uniswap V2",
        "network": "ethereum",
        "reserve_in": "20000000",
        "reserve_out": "10000",
        "reserve_in_usd": "20000000",
        "reserve_out_usd": "20000000",
        "volume_24h": "10000000",
        "timestamp": NOW - 5,
    }
    pool.update(overrides)
    return pool


def sell_pool(**overrides):
    """WETH -> USDC pool at 2120 USDC per WETH."""
    pool = {
        "family": "constant_product",
        "venue": "SushiSwap",
        "network": "ethereum",
        "reserve_in": "10000",
        "reserve_out": "21200000",
        "reserve_in_usd": "21200000",
        "reserve_out_usd": "21200000",
        "volume_24h": "10000000",
        "timestamp": NOW - 5,
    }
    pool.update(overrides)
    return pool


def make_request(sell_price="2120", sell_network="ethereum", with_pools=True, **extra):
    request = {
        "token": "weth",
        "buy": {"venue": "Uniswap V2", "network": "ethereum", "protocol": "uniswap_v2", "price": "2000"},
        "sell": {"venue": "SushiSwap", "network": sell_network, "protocol": "sushiswap", "price": sell_price},
        "timestamp": NOW - 5,
        "market": {"volatility": 0.01, "congestion": 10},
    }
    if with_pools:
        request["buy"]["pool"] = buy_pool()
        request["sell"]["pool"] = sell_pool(network=sell_network)
    request.update(extra)
    return request


@pytest.fixture
def engine():
    return AnalysisOrchestrator(clock=lambda: NOW)


class TestAnalyzeOpportunity:
    """Test the single-opportunity pipeline."""

    @pytest.mark.asyncio
    async def test_executable_same_chain_trade(self, engine):
        result = await engine.analyze_opportunity(make_request(), 1)

        assert result.success is True
        assert result.error is None
        assert result.data_timestamp == NOW - 5

        analysis = result.analysis
        assert analysis.token == "WETH"
        assert analysis.cross_chain is False
        assert analysis.spread.percentage == Decimal("6")
        assert analysis.spread.direction == TradeDirection.A_TO_B
        assert [leg.side for leg in analysis.legs] == ["buy", "sell"]
        assert analysis.legs[0].amount_in == Decimal("2000")
        assert analysis.legs[0].pair == ("USDC", "WETH")
        assert analysis.liquidity_valid is True

        assert analysis.gas.total_cost_usd == Decimal("13.2")
        assert analysis.profit.costs.gas == analysis.gas.total_cost_usd
        assert analysis.profit.costs.bridge_fee == Decimal("0")
        assert analysis.profit.gross_profit == Decimal("120")
        assert analysis.profit.net_profit == analysis.profit.gross_profit - analysis.profit.total_costs
        assert analysis.risk.level == RiskLevel.LOW

        final = analysis.final
        assert final.is_executable is True
        assert final.components.profit == 1.0
        assert final.components.liquidity == 1.0
        assert final.composite_score > 0.9
        assert final.recommendation == Recommendation.EXECUTE_IMMEDIATELY
        assert final.critical_factors == ()

    @pytest.mark.asyncio
    async def test_execution_plan(self, engine):
        result = await engine.analyze_opportunity(make_request(), 1)
        analysis = result.analysis
        plan = analysis.final.execution_plan

        assert [step.action for step in plan.steps] == ["buy", "sell"]
        assert plan.steps[0].venue == "Uniswap V2"
        assert plan.gas_strategy == analysis.gas_strategy.recommended.key
        assert plan.slippage_tolerance == Decimal("0.005")
        assert plan.deadline_seconds == 300
        assert [a.type for a in analysis.final.alternatives] == [AlternativeType.GAS_STRATEGY]

    @pytest.mark.asyncio
    async def test_cross_chain_pays_bridge(self, engine):
        result = await engine.analyze_opportunity(make_request(sell_network="polygon"), 1)
        analysis = result.analysis

        assert analysis.cross_chain is True
        assert analysis.profit.costs.bridge_fee == Decimal("10")
        assert analysis.gas.total_cost_usd == Decimal("9.906912")
        assert "cross_chain" in [f.factor for f in analysis.final.critical_factors]
        assert AlternativeType.SAME_CHAIN_ROUTE in [a.type for a in analysis.final.alternatives]
        assert [s.action for s in analysis.final.execution_plan.steps] == ["buy", "bridge", "sell"]

    @pytest.mark.asyncio
    async def test_unprofitable_trade(self, engine):
        result = await engine.analyze_opportunity(make_request(sell_price="1990"), 1)
        final = result.analysis.final

        assert result.success is True
        assert result.analysis.spread.direction == TradeDirection.B_TO_A
        assert final.is_executable is False
        assert final.recommendation == Recommendation.DO_NOT_EXECUTE
        assert final.execution_plan is None
        assert final.critical_factors[0].factor == "unprofitable"

    @pytest.mark.asyncio
    async def test_price_impact_constraint(self, engine):
        result = await engine.analyze_opportunity(
            make_request(), 1, constraints={"max_price_impact": "0.00001"}
        )
        final = result.analysis.final

        assert result.analysis.liquidity_valid is False
        assert final.is_executable is False
        assert "price_impact" in [f.factor for f in final.critical_factors]
        # The engine default is untouched
        assert engine.config.liquidity.max_price_impact == Decimal("0.05")

    @pytest.mark.asyncio
    async def test_stale_payload_fails_at_freshness(self, engine):
        result = await engine.analyze_opportunity(make_request(timestamp=NOW - 120), 1)

        assert result.success is False
        assert result.analysis is None
        assert result.error.stage == "freshness"
        assert result.error.kind == "stale_data"
        assert result.is_executable is False
        assert result.composite_score == 0.0

    @pytest.mark.asyncio
    async def test_simulated_payload_rejected(self, engine):
        result = await engine.analyze_opportunity(make_request(simulated=True), 1)

        assert result.success is False
        assert result.error.kind == "stale_data"

    @pytest.mark.asyncio
    async def test_invalid_pool_fails_at_pool_state(self, engine):
        request = make_request()
        request["buy"]["pool"] = buy_pool(reserve_in="0")

        result = await engine.analyze_opportunity(request, 1)

        assert result.success is False
        assert result.error.kind == "pool_state_invalid"
        assert result.error.stage == "pool_state"
        assert result.error.venue == "Uniswap V2"

    @pytest.mark.asyncio
    async def test_stale_inline_pool_rejected(self, engine):
        request = make_request()
        request["sell"]["pool"] = sell_pool(timestamp=NOW - 86400)

        result = await engine.analyze_opportunity(request, 1)

        assert result.success is False
        assert result.error.kind == "stale_data"
        assert result.error.stage == "liquidity"
        assert result.error.venue == "SushiSwap"
        assert result.is_executable is False

    @pytest.mark.asyncio
    async def test_stale_feed_pool_rejected(self):
        feed = SnapshotQuoteFeed()
        feed.add_pool("Uniswap V2", "ethereum", ("USDC", "WETH"),
                      PoolState.model_validate(buy_pool(timestamp=NOW - 3600)))
        engine = AnalysisOrchestrator(feed=feed, clock=lambda: NOW)

        result = await engine.analyze_opportunity(make_request(with_pools=False), 1)

        assert result.success is False
        assert result.error.kind == "stale_data"
        assert result.error.venue == "Uniswap V2"
        assert engine.metrics["errors_count"] == 1

    @pytest.mark.asyncio
    async def test_pool_family_must_match_protocol(self, engine):
        request = make_request()
        request["sell"]["protocol"] = "curve"

        result = await engine.analyze_opportunity(request, 1)

        assert result.success is False
        assert result.error.kind == "pool_state_invalid"
        assert result.error.stage == "pool_state"
        assert result.error.venue == "SushiSwap"

    @pytest.mark.asyncio
    async def test_unknown_protocol_uses_pool_family(self, engine):
        request = make_request()
        request["sell"]["protocol"] = "in_house_amm"

        result = await engine.analyze_opportunity(request, 1)

        assert result.success is True
        assert len(result.analysis.legs) == 2

    @pytest.mark.asyncio
    async def test_malformed_request_raises(self, engine):
        request = make_request()
        del request["sell"]

        with pytest.raises(InvalidInput):
            await engine.analyze_opportunity(request, 1)
        with pytest.raises(InvalidInput):
            await engine.analyze_opportunity("WETH", 1)

    @pytest.mark.asyncio
    async def test_non_positive_amount_raises(self, engine):
        with pytest.raises(InvalidInput):
            await engine.analyze_opportunity(make_request(), 0)

    @pytest.mark.asyncio
    async def test_missing_pool_without_feed_raises(self, engine):
        with pytest.raises(InvalidInput):
            await engine.analyze_opportunity(make_request(with_pools=False), 1)

    @pytest.mark.asyncio
    async def test_pools_fetched_from_feed(self):
        feed = SnapshotQuoteFeed()
        feed.add_pool("Uniswap V2", "ethereum", ("USDC", "WETH"), PoolState.model_validate(buy_pool()))
        engine = AnalysisOrchestrator(feed=feed, clock=lambda: NOW)

        result = await engine.analyze_opportunity(make_request(with_pools=False), 1)

        assert result.success is True
        # No sell pool on the feed: only the buy leg is validated
        assert [leg.side for leg in result.analysis.legs] == ["buy"]
        assert feed.calls["get_pool_state"] == 2


class TestGasFallback:
    """Test behaviour when the gas estimator misbehaves."""

    @pytest.mark.asyncio
    async def test_timeout_uses_fallback_cost(self):
        async def slow_estimate(operations):
            await asyncio.sleep(1)

        gas_estimator = Mock()
        gas_estimator.estimate = AsyncMock(side_effect=slow_estimate)
        gas_estimator.optimize_strategy = AsyncMock(side_effect=ExternalCollaboratorError("down"))
        engine = AnalysisOrchestrator(
            gas_estimator=gas_estimator,
            config=AnalysisConfig(gas_timeout_seconds=0.05),
            clock=lambda: NOW,
        )

        result = await engine.analyze_opportunity(make_request(), 1)

        assert result.success is True
        gas = result.analysis.gas
        assert gas.is_fallback is True
        assert gas.total_cost_usd == Decimal("50")
        assert result.analysis.profit.costs.gas == Decimal("50")
        assert result.analysis.gas_strategy is None
        assert "gas_estimate_unavailable" in [f.factor for f in result.analysis.final.critical_factors]

    @pytest.mark.asyncio
    async def test_estimator_error_uses_fallback_cost(self):
        gas_estimator = Mock()
        gas_estimator.estimate = AsyncMock(side_effect=ExternalCollaboratorError("rpc down"))
        gas_estimator.optimize_strategy = AsyncMock(return_value=None)
        engine = AnalysisOrchestrator(gas_estimator=gas_estimator, clock=lambda: NOW)

        result = await engine.analyze_opportunity(make_request(), 1)

        assert result.analysis.gas.is_fallback is True
        assert result.analysis.gas.risk_factors == ("ESTIMATE_UNAVAILABLE",)


class TestScenarios:
    """Test what-if simulation."""

    @pytest.mark.asyncio
    async def test_best_viable_scenario(self, engine):
        simulation = await engine.simulate_scenarios(make_request(), [
            {"name": "base", "trade_amount": 1},
            {"name": "narrow", "trade_amount": 1, "sell_price_multiplier": "0.95"},
            {"name": "tight_impact", "trade_amount": 1,
             "config_overrides": {"liquidity.max_price_impact": Decimal("0.00001")}},
            {"name": "stressed", "trade_amount": 1, "market": {"volatility": 0.5, "congestion": 200}},
        ])

        viable = {o.name: o.viable for o in simulation.outcomes}
        assert viable == {"base": True, "narrow": False, "tight_impact": False, "stressed": True}
        assert simulation.best_scenario.name == "base"
        assert simulation.base.token == "WETH"

        stressed = simulation.outcomes[3].result.analysis
        assert stressed.risk.level == RiskLevel.HIGH
        assert AlternativeType.WAIT_FOR_LOWER_CONGESTION in [a.type for a in stressed.final.alternatives]

        risk = simulation.risk_analysis
        assert risk["scenarios"] == 4
        assert risk["viable"] == 2
        assert risk["failed"] == 0
        assert risk["viability_rate"] == 0.5
        assert risk["worst_risk_level"] == "HIGH"

    @pytest.mark.asyncio
    async def test_scenarios_leave_engine_config_alone(self, engine):
        await engine.simulate_scenarios(make_request(), [
            {"name": "strict", "trade_amount": 1, "config_overrides": {"min_spread_percentage": Decimal("10")}},
        ])
        assert engine.config.min_spread_percentage == Decimal("0.1")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("overrides", [{"nonexistent.value": 1}, {"bogus": 1}])
    async def test_unknown_override_raises(self, engine, overrides):
        with pytest.raises(InvalidInput):
            await engine.simulate_scenarios(make_request(), [
                {"name": "bad", "trade_amount": 1, "config_overrides": overrides},
            ])

    @pytest.mark.asyncio
    async def test_malformed_scenario_raises(self, engine):
        with pytest.raises(InvalidInput):
            await engine.simulate_scenarios(make_request(), [{"name": "no_amount"}])


class TestMetricsAndCalibration:
    """Test metrics, calibration and stats."""

    @pytest.mark.asyncio
    async def test_metrics_track_outcomes(self, engine):
        await engine.analyze_opportunity(make_request(), 1)
        await engine.analyze_opportunity(make_request(timestamp=NOW - 120), 1)

        metrics = engine.metrics
        assert metrics["calculations_performed"] == 2
        assert metrics["successful"] == 1
        assert metrics["errors_count"] == 1
        assert metrics["success_rate"] == 0.5
        assert metrics["average_execution_time_ms"] > 0

        engine.reset_metrics()
        assert engine.metrics["calculations_performed"] == 0
        assert engine.metrics["last_reset"] == NOW

    def test_calibrate(self, engine):
        config = engine.calibrate(0.08)

        assert config.min_spread_percentage == Decimal("0.2")
        assert config.default_volatility == 0.08
        assert engine.config is config
        assert engine.last_calibration == NOW

        assert engine.calibrate(0.01).min_spread_percentage == Decimal("0.1")

    def test_calibrate_rejects_negative_volatility(self, engine):
        with pytest.raises(InvalidInput):
            engine.calibrate(-0.1)

    def test_engine_stats(self, engine):
        stats = engine.get_engine_stats()

        assert set(stats["components"]) == {"liquidity_validator", "risk_scorer", "gas_estimator"}
        assert stats["config"]["min_spread_percentage"] == "0.1"
        assert stats["metrics"]["calculations_performed"] == 0

    @pytest.mark.asyncio
    async def test_scan_and_analyze_requires_scanner(self, engine):
        with pytest.raises(InvalidInput):
            await engine.scan_and_analyze(["WETH"])

    def test_viability_tiers(self):
        assert [viability_tier(i) for i in (0, 2, 3, 6, 7)] == [
            ViabilityTier.PREMIUM,
            ViabilityTier.PREMIUM,
            ViabilityTier.GOOD,
            ViabilityTier.GOOD,
            ViabilityTier.ACCEPTABLE,
        ]

    def test_default_gas_estimator(self, engine):
        assert isinstance(engine.gas_estimator, NetworkGasEstimator)
