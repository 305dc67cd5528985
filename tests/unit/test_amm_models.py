"""Unit tests for the AMM price-impact models."""
import pytest
from decimal import Decimal

from arbitrage_engine.amm import (
    ConcentratedLiquidityModel,
    ConstantProductModel,
    StableSwapModel,
    WeightedPoolModel,
    calculate_price_impact,
    get_model
)
from arbitrage_engine.core.models import PoolFamily, PoolState
from arbitrage_engine.exceptions import (
    ImpactExceeded,
    InvalidInput,
    LiquidityInsufficient,
    PoolStateInvalid
)


@pytest.fixture
def cp_pool():
    """Constant product pool paying 2 output per input at spot."""
    return PoolState(
        family=PoolFamily.CONSTANT_PRODUCT,
        venue="uniswap_v2",
        reserve_in=Decimal("100000"),
        reserve_out=Decimal("200000"),
        fee_rate=Decimal("0.003"),
    )


@pytest.fixture
def weighted_pool():
    return PoolState(
        family=PoolFamily.WEIGHTED_POOL,
        venue="balancer",
        reserve_in=Decimal("800"),
        reserve_out=Decimal("200"),
        weight_in=Decimal("0.8"),
        weight_out=Decimal("0.2"),
        fee_rate=Decimal("0.003"),
    )


@pytest.fixture
def stable_pool():
    return PoolState(
        family=PoolFamily.STABLE_SWAP,
        venue="curve",
        reserve_in=Decimal("1000000"),
        reserve_out=Decimal("1000000"),
        amplification=Decimal("100"),
        fee_rate=Decimal("0.0004"),
    )


@pytest.fixture
def cl_pool():
    return PoolState(
        family=PoolFamily.CONCENTRATED_LIQUIDITY,
        venue="uniswap_v3",
        reserve_in=Decimal("100000"),
        reserve_out=Decimal("100000"),
        liquidity=Decimal("1000000"),
        current_tick=0,
        tick_lower=-600,
        tick_upper=600,
        tick_spacing=60,
    )


class TestConstantProduct:
    """Test x * y = k pricing."""

    def test_worked_example(self, cp_pool):
        result = calculate_price_impact(cp_pool, 1000)

        assert result.family == PoolFamily.CONSTANT_PRODUCT
        assert result.amount_in_after_fee == Decimal("997")
        assert float(result.amount_out) == pytest.approx(1974.316069, abs=1e-6)
        assert result.price_before == Decimal("2")
        assert float(result.price_impact) == pytest.approx(997 / 100997, rel=1e-6)
        assert result.is_acceptable_impact is True
        assert result.fully_filled is True

    def test_slippage_includes_fee(self, cp_pool):
        result = calculate_price_impact(cp_pool, 1000)

        assert result.slippage > result.price_impact
        assert float(result.effective_price) == pytest.approx(1.974316069, abs=1e-8)

    def test_invariant_preserved(self, cp_pool):
        result = calculate_price_impact(cp_pool, 1000)

        k = cp_pool.reserve_in * cp_pool.reserve_out
        k_after = result.reserve_in_after * result.reserve_out_after
        assert abs(k_after - k) / k < Decimal("1e-20")

    def test_amount_in_for_output(self, cp_pool):
        model = ConstantProductModel()
        amount_in = model.amount_in_for_output(cp_pool, Decimal("1974.316069"))

        assert float(amount_in) == pytest.approx(1000, abs=1e-4)

    def test_draining_output_raises(self, cp_pool):
        with pytest.raises(LiquidityInsufficient):
            ConstantProductModel().amount_in_for_output(cp_pool, 200000)

    def test_ensure_acceptable_raises_on_large_trade(self, cp_pool):
        result = calculate_price_impact(cp_pool, 100000)

        assert result.is_acceptable_impact is False
        with pytest.raises(ImpactExceeded) as exc_info:
            result.ensure_acceptable(venue="uniswap_v2")

        assert exc_info.value.stage == "price_impact"
        assert exc_info.value.price_impact == result.price_impact

    def test_custom_max_impact(self, cp_pool):
        result = calculate_price_impact(cp_pool, 1000, max_price_impact=Decimal("0.005"))
        assert result.is_acceptable_impact is False


class TestWeightedPool:
    """Test Balancer weighted pricing."""

    def test_spot_price_uses_weights(self, weighted_pool):
        assert WeightedPoolModel().spot_price(weighted_pool) == Decimal("1")

    def test_equal_weights_match_constant_product(self, cp_pool):
        weighted = cp_pool.model_copy(update={
            "family": PoolFamily.WEIGHTED_POOL,
            "weight_in": Decimal("0.5"),
            "weight_out": Decimal("0.5"),
        })

        cp_result = calculate_price_impact(cp_pool, 1000)
        weighted_result = calculate_price_impact(weighted, 1000)

        assert weighted_result.amount_out == cp_result.amount_out
        assert weighted_result.price_impact == cp_result.price_impact

    def test_missing_weights_rejected(self, weighted_pool):
        pool = weighted_pool.model_copy(update={"weight_out": None})
        with pytest.raises(PoolStateInvalid):
            calculate_price_impact(pool, 10)


class TestStableSwap:
    """Test the StableSwap invariant solver."""

    def test_balanced_pool_trades_at_par(self, stable_pool):
        assert StableSwapModel().spot_price(stable_pool) == pytest.approx(Decimal("1"))

    def test_output_beats_constant_product(self, stable_pool):
        cp = stable_pool.model_copy(update={"family": PoolFamily.CONSTANT_PRODUCT})

        stable_result = calculate_price_impact(stable_pool, 10000)
        cp_result = calculate_price_impact(cp, 10000)

        assert stable_result.amount_out > cp_result.amount_out
        assert stable_result.price_impact < cp_result.price_impact
        assert stable_result.amount_out < Decimal("10000")

    def test_imbalanced_pool_prices_below_par(self, stable_pool):
        pool = stable_pool.model_copy(update={
            "reserve_in": Decimal("2000000"),
            "reserve_out": Decimal("500000"),
        })
        assert StableSwapModel().spot_price(pool) < Decimal("1")

    def test_requires_amplification(self, stable_pool):
        pool = stable_pool.model_copy(update={"amplification": None})
        with pytest.raises(PoolStateInvalid):
            calculate_price_impact(pool, 100)


class TestConcentratedLiquidity:
    """Test tick-walking simulation."""

    def test_small_trade_within_range(self, cl_pool):
        result = calculate_price_impact(cl_pool, 1000)

        assert ConcentratedLiquidityModel().spot_price(cl_pool) == Decimal("1")
        assert result.fully_filled is True
        assert result.is_acceptable_impact is True
        assert Decimal("0") < result.amount_out < Decimal("1000")

    def test_trade_beyond_range_is_partial(self, cl_pool):
        result = calculate_price_impact(cl_pool, 50000)

        assert result.fully_filled is False
        assert result.is_acceptable_impact is False
        assert result.price_impact < Decimal("0.05")

    def test_liquidity_exhausted_at_tick(self, cl_pool):
        pool = cl_pool.model_copy(update={
            "tick_liquidity_net": {60: Decimal("-1000000")},
        })
        result = calculate_price_impact(pool, 5000)

        assert result.fully_filled is False
        assert result.is_acceptable_impact is False

    def test_tick_outside_range_rejected(self, cl_pool):
        pool = cl_pool.model_copy(update={"current_tick": 600})
        with pytest.raises(PoolStateInvalid):
            calculate_price_impact(pool, 100)


class TestCommonBehaviour:
    """Behaviour every family shares."""

    @pytest.mark.parametrize("pool_fixture", ["cp_pool", "weighted_pool", "stable_pool", "cl_pool"])
    def test_impact_grows_with_trade_size(self, request, pool_fixture):
        pool = request.getfixturevalue(pool_fixture)
        impacts = [calculate_price_impact(pool, amount).price_impact for amount in (1, 10, 50, 150)]

        assert impacts == sorted(impacts)
        assert impacts[0] < impacts[-1]

    def test_non_positive_amount(self, cp_pool):
        with pytest.raises(InvalidInput):
            calculate_price_impact(cp_pool, 0)

    def test_zero_reserve(self, cp_pool):
        pool = cp_pool.model_copy(update={"reserve_in": Decimal("0")})
        with pytest.raises(PoolStateInvalid):
            calculate_price_impact(pool, 10)

    def test_model_family_mismatch(self, cp_pool):
        with pytest.raises(PoolStateInvalid):
            StableSwapModel().price_impact(cp_pool, 10)

    def test_unknown_family(self):
        with pytest.raises(PoolStateInvalid):
            get_model("order_book")
