"""
Analysis orchestrator.

Runs the full pipeline for one opportunity:

    freshness -> spread -> liquidity (per leg) -> gas estimate -> net profit
    -> risk -> gas strategy -> final assessment

Each analysis works on its own inputs and an immutable ``AnalysisConfig``,
so any number of analyses can run concurrently. Only structurally invalid
requests raise; every other pipeline error is returned as a failed
``AnalysisResult`` carrying the stage it happened in.
"""
import asyncio
import logging
import time
from dataclasses import replace
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from ..config.analysis_config import AnalysisConfig
from ..core.models import Opportunity, OpportunityType, PoolState, family_for_protocol
from ..core.precision import ZERO, require_non_negative, require_positive
from ..core.spread_calculator import ExecutionCosts, SpreadCalculator
from ..exceptions import (
    ArbitrageEngineError,
    ExternalCollaboratorError,
    ExternalCollaboratorTimeout,
    InvalidInput,
    PoolStateInvalid,
    StaleData,
)
from ..feeds.base import REFERENCE_ASSET, QuoteFeed
from ..gas.estimator import GasEstimate, GasEstimator, GasOperation, GasStrategyPlan, NetworkGasEstimator, default_operations
from ..risk.risk_scorer import RiskInputs, RiskLevel, RiskScorer
from ..scanner.opportunity_scanner import OpportunityScanner
from ..validation.freshness import check_data_freshness
from ..validation.liquidity_validator import LiquidityValidator
from .assessment import (
    AnalysisBreakdown,
    AnalysisFailure,
    AnalysisResult,
    BatchAnalysis,
    FinalAssessment,
    LegAnalysis,
    RankedOpportunity,
    Recommendation,
    ScenarioOutcome,
    ScenarioSimulation,
    ViabilityTier,
    build_execution_plan,
    component_scores,
    composite_score,
    identify_critical_factors,
    max_leg_slippage,
    min_leg_liquidity,
    recommend,
    suggest_alternatives,
    viability_tier,
)
from .requests import AnalysisConstraints, OpportunityRequest, Scenario, VenueLeg

logger = logging.getLogger(__name__)

OpportunityData = Union[Mapping[str, Any], OpportunityRequest, Opportunity]


class AnalysisOrchestrator:
    """
    Sequences the calculators, validators and external collaborators into
    one analysis and aggregates batch and what-if runs on top of it.
    """

    def __init__(
        self,
        gas_estimator: Optional[GasEstimator] = None,
        feed: Optional[QuoteFeed] = None,
        scanner: Optional[OpportunityScanner] = None,
        config: Optional[AnalysisConfig] = None,
        liquidity_validator: Optional[LiquidityValidator] = None,
        risk_scorer: Optional[RiskScorer] = None,
        clock=time.time
    ):
        """
        Initialize the orchestrator.

        Args:
            gas_estimator: Gas/fee estimator (deterministic network model if omitted)
            feed: Feed used to fetch pool states missing from a request
            scanner: Scanner used by ``scan_and_analyze``
            config: Default configuration for analyses
            liquidity_validator: Pool validator (created from config if omitted)
            risk_scorer: Risk scorer (created from config if omitted)
            clock: Time source in epoch seconds for the freshness guard
        """
        self.config = config or AnalysisConfig()
        self.gas_estimator = gas_estimator or NetworkGasEstimator()
        self.feed = feed
        self.scanner = scanner
        self.liquidity_validator = liquidity_validator or LiquidityValidator(self.config.liquidity)
        self.risk_scorer = risk_scorer or RiskScorer(self.config.risk)
        self.clock = clock
        self.last_calibration: Optional[float] = None

        self.metrics: Dict[str, Any] = {}
        self.reset_metrics()

    # ------------------------------------------------------------------
    # Single analysis
    # ------------------------------------------------------------------

    async def analyze_opportunity(
        self,
        opportunity_data: OpportunityData,
        trade_amount,
        constraints: Optional[Union[Mapping[str, Any], AnalysisConstraints]] = None,
        config: Optional[AnalysisConfig] = None
    ) -> AnalysisResult:
        """
        Analyze one two-venue opportunity for ``trade_amount`` tokens.

        Args:
            opportunity_data: Request mapping, parsed request or scanner opportunity
            trade_amount: Token amount to buy and sell
            constraints: Execution limits (max execution time, max price impact)
            config: Configuration for this call only

        Returns:
            AnalysisResult, failed with stage context on any pipeline error

        Raises:
            InvalidInput: if the request is malformed, the amount is not
                positive or the buy pool cannot be obtained at all
        """
        started = time.perf_counter()
        request = self.parse_request(opportunity_data)
        amount = require_positive(trade_amount, "trade_amount", stage="input")
        limits = self._parse_constraints(constraints)
        cfg = config or self.config
        if limits.max_price_impact is not None:
            cfg = cfg.with_overrides({"liquidity.max_price_impact": limits.max_price_impact})
        max_time_s = limits.max_execution_time_s or cfg.default_max_execution_time_s

        if request.buy.pool is None and self.feed is None:
            raise InvalidInput(
                "Request has no buy pool state and no feed is configured to fetch it",
                stage="input",
                venue=request.buy.venue,
            )

        stage = "freshness"
        data_timestamp = None
        try:
            data_timestamp = check_data_freshness(
                request.model_dump(),
                max_age_seconds=cfg.max_data_age_seconds,
                now=self.clock(),
                real_data_only=cfg.real_data_only,
            )

            stage = "spread"
            spread = SpreadCalculator(cfg.min_spread_percentage).spread(request.buy.price, request.sell.price)

            stage = "liquidity"
            legs = await self._validate_legs(request, amount, cfg)

            stage = "gas"
            operations = request.operations or default_operations(
                [request.buy.network, request.sell.network], request.is_cross_chain
            )
            gas = await self._estimate_gas(operations, cfg)

            stage = "net_profit"
            profit = SpreadCalculator(cfg.min_spread_percentage).net_profit(
                request.buy.price,
                request.sell.price,
                amount,
                ExecutionCosts(
                    gas_fee=gas.total_cost_usd,
                    protocol_fee_rate=(request.protocol_fee_rate
                                       if request.protocol_fee_rate is not None else cfg.protocol_fee_rate),
                    slippage_rate=max_leg_slippage(legs) or cfg.default_slippage_rate,
                    bridge_fee=cfg.bridge_fee_usd if request.is_cross_chain else ZERO,
                ),
            )

            stage = "risk"
            risk = self.risk_scorer.score(self._risk_inputs(request, legs, gas, cfg), cfg.risk)

            stage = "gas_strategy"
            gas_strategy = await self._optimize_gas(profit.net_profit, operations, max_time_s, cfg)

            stage = "assessment"
            final = self._final_assessment(request, amount, spread, legs, gas, gas_strategy,
                                           profit, risk, max_time_s, cfg)

        except ArbitrageEngineError as e:
            elapsed_ms = (time.perf_counter() - started) * 1000
            self._update_metrics(elapsed_ms, success=False)
            if isinstance(e, StaleData):
                logger.warning(f"Rejected {request.token} opportunity: {e}")
            else:
                logger.error(f"Analysis of {request.token} failed at {e.stage or stage}: {e}")
            return AnalysisResult(
                success=False,
                trade_amount=amount,
                error=AnalysisFailure(stage=e.stage or stage, kind=e.kind, message=e.message, venue=e.venue),
                analysis_time_ms=elapsed_ms,
                data_timestamp=data_timestamp,
            )
        except Exception as e:
            elapsed_ms = (time.perf_counter() - started) * 1000
            self._update_metrics(elapsed_ms, success=False)
            logger.error(f"Unexpected error analyzing {request.token} at {stage}: {e}")
            return AnalysisResult(
                success=False,
                trade_amount=amount,
                error=AnalysisFailure(stage=stage, kind=type(e).__name__, message=str(e)),
                analysis_time_ms=elapsed_ms,
                data_timestamp=data_timestamp,
            )

        elapsed_ms = (time.perf_counter() - started) * 1000
        self._update_metrics(elapsed_ms, success=True)
        logger.info(
            f"Analyzed {request.token} {request.buy.venue}@{request.buy.network} -> "
            f"{request.sell.venue}@{request.sell.network}: score={final.composite_score:.3f} "
            f"{final.recommendation.value} in {elapsed_ms:.1f}ms"
        )

        return AnalysisResult(
            success=True,
            trade_amount=amount,
            analysis=AnalysisBreakdown(
                token=request.token,
                cross_chain=request.is_cross_chain,
                spread=spread,
                legs=legs,
                gas=gas,
                gas_strategy=gas_strategy,
                profit=profit,
                risk=risk,
                final=final,
            ),
            analysis_time_ms=elapsed_ms,
            data_timestamp=data_timestamp,
        )

    @staticmethod
    def parse_request(opportunity_data: OpportunityData) -> OpportunityRequest:
        """
        Validate opportunity data into an ``OpportunityRequest``.

        Raises:
            InvalidInput: if required fields are missing or malformed
        """
        if isinstance(opportunity_data, OpportunityRequest):
            return opportunity_data
        if isinstance(opportunity_data, Opportunity):
            if opportunity_data.type != OpportunityType.SIMPLE:
                raise InvalidInput("Only two-venue opportunities can be analyzed", stage="input")
            opportunity_data = opportunity_data.to_analysis_payload()
        if not isinstance(opportunity_data, Mapping):
            raise InvalidInput(
                f"Opportunity data must be a mapping, got {type(opportunity_data).__name__}",
                stage="input",
            )
        try:
            return OpportunityRequest.model_validate(opportunity_data)
        except ValidationError as e:
            raise InvalidInput(
                f"Malformed opportunity data ({e.error_count()} errors)",
                stage="input",
                details={"errors": e.errors(include_url=False, include_context=False)},
            ) from e

    @staticmethod
    def _parse_constraints(constraints) -> AnalysisConstraints:
        if constraints is None:
            return AnalysisConstraints()
        if isinstance(constraints, AnalysisConstraints):
            return constraints
        try:
            return AnalysisConstraints.model_validate(constraints)
        except ValidationError as e:
            raise InvalidInput(f"Malformed constraints: {e}", stage="input") from e

    async def _fetch_pool(self, leg: VenueLeg, pair: Tuple[str, str], cfg: AnalysisConfig) -> PoolState:
        timeout = cfg.scanner.venue_timeout_seconds
        try:
            return await asyncio.wait_for(
                self.feed.get_pool_state(leg.venue, pair, leg.network), timeout=timeout
            )
        except asyncio.TimeoutError as e:
            raise ExternalCollaboratorTimeout(
                f"Pool state for {pair[0]}/{pair[1]} not received within {timeout}s",
                timeout_seconds=timeout,
                stage="liquidity",
                venue=leg.venue,
            ) from e

    async def _validate_legs(
        self,
        request: OpportunityRequest,
        amount: Decimal,
        cfg: AnalysisConfig
    ) -> Tuple[LegAnalysis, ...]:
        """
        Validate the buy pool (reference asset -> token) and, when one is
        available, the sell pool (token -> reference asset).

        The buy pool is required. A sell pool the feed cannot supply only
        drops that leg's validation.
        """
        token = request.token
        buy_pair = (REFERENCE_ASSET, token)
        sell_pair = (token, REFERENCE_ASSET)

        buy_pool = request.buy.pool
        if buy_pool is None:
            buy_pool = await self._fetch_pool(request.buy, buy_pair, cfg)
        buy_notional = amount * request.buy.price
        legs = [self._validate_leg("buy", request.buy, buy_pair, buy_pool, buy_notional, buy_notional, cfg)]

        sell_pool = request.sell.pool
        if sell_pool is None and self.feed is not None:
            try:
                sell_pool = await self._fetch_pool(request.sell, sell_pair, cfg)
            except ExternalCollaboratorError as e:
                logger.warning(f"Sell leg on {request.sell.venue} not validated: {e}")

        if sell_pool is not None:
            legs.append(self._validate_leg(
                "sell", request.sell, sell_pair, sell_pool, amount, amount * request.sell.price, cfg
            ))

        return tuple(legs)

    def _validate_leg(
        self,
        side: str,
        leg: VenueLeg,
        pair: Tuple[str, str],
        pool: PoolState,
        amount_in: Decimal,
        value_usd: Decimal,
        cfg: AnalysisConfig
    ) -> LegAnalysis:
        """
        Price one leg against its pool.

        Raises:
            StaleData: if the pool snapshot is older than the freshness bound
            PoolStateInvalid: if the pool's family does not match the venue's protocol
        """
        age = pool.age_seconds(self.clock())
        if age > cfg.max_data_age_seconds:
            raise StaleData(
                f"{side} pool snapshot is {age:.1f}s old (max {cfg.max_data_age_seconds}s)",
                stage="liquidity",
                venue=leg.venue,
                details={"age_seconds": age, "max_age_seconds": cfg.max_data_age_seconds},
            )

        expected = family_for_protocol(leg.protocol)
        if expected is not None and expected != pool.family:
            raise PoolStateInvalid(
                f"{leg.protocol} venue returned a {pool.family.value} pool, expected {expected.value}",
                stage="pool_state",
                venue=leg.venue,
                details={"protocol": leg.protocol, "pool_family": pool.family.value},
            )

        validation = self.liquidity_validator.validate(pool, amount_in, value_usd, cfg.liquidity)
        logger.debug(
            f"{side} leg {leg.venue}: impact={validation.price_impact.price_impact_percentage:.4f}% "
            f"valid={validation.is_valid}"
        )
        return LegAnalysis(
            side=side,
            venue=leg.venue,
            network=leg.network,
            pair=pair,
            amount_in=amount_in,
            validation=validation,
        )

    async def _estimate_gas(self, operations: Sequence[GasOperation], cfg: AnalysisConfig) -> GasEstimate:
        """Gas estimate, or the configured fallback cost when the estimator fails or times out."""
        try:
            return await asyncio.wait_for(
                self.gas_estimator.estimate(operations), timeout=cfg.gas_timeout_seconds
            )
        except (asyncio.TimeoutError, ExternalCollaboratorError) as e:
            logger.warning(
                f"Gas estimate unavailable ({type(e).__name__}), assuming ${cfg.fallback_gas_cost_usd}"
            )
            return GasEstimate(
                total_cost_usd=cfg.fallback_gas_cost_usd,
                max_confirmation_time_s=cfg.scanner.base_execution_time_ms // 1000,
                total_gas_used=0,
                max_gas_price_gwei=Decimal(str(cfg.risk.gas_baseline_gwei)),
                risk_level="HIGH",
                risk_factors=("ESTIMATE_UNAVAILABLE",),
                is_fallback=True,
            )

    async def _optimize_gas(
        self,
        expected_profit: Decimal,
        operations: Sequence[GasOperation],
        max_time_s: float,
        cfg: AnalysisConfig
    ) -> Optional[GasStrategyPlan]:
        try:
            return await asyncio.wait_for(
                self.gas_estimator.optimize_strategy(expected_profit, operations, max_time_s),
                timeout=cfg.gas_timeout_seconds,
            )
        except (asyncio.TimeoutError, ExternalCollaboratorError) as e:
            logger.warning(f"Gas strategy optimization unavailable ({type(e).__name__})")
            return None

    @staticmethod
    def _risk_inputs(
        request: OpportunityRequest,
        legs: Tuple[LegAnalysis, ...],
        gas: GasEstimate,
        cfg: AnalysisConfig
    ) -> RiskInputs:
        market = request.market
        return RiskInputs(
            volatility=market.volatility if market.volatility is not None else cfg.default_volatility,
            liquidity_usd=float(min_leg_liquidity(legs)),
            slippage=float(max_leg_slippage(legs)),
            execution_time_ms=float(gas.max_confirmation_time_s * 1000),
            gas_price_gwei=float(gas.max_gas_price_gwei),
            congestion=market.congestion if market.congestion is not None else cfg.default_congestion,
        )

    @staticmethod
    def _final_assessment(
        request: OpportunityRequest,
        amount: Decimal,
        spread,
        legs: Tuple[LegAnalysis, ...],
        gas: GasEstimate,
        gas_strategy: Optional[GasStrategyPlan],
        profit,
        risk,
        max_time_s: float,
        cfg: AnalysisConfig
    ) -> FinalAssessment:
        liquidity_valid = all(leg.validation.is_valid for leg in legs)
        components = component_scores(profit, liquidity_valid, risk, gas_strategy, cfg.weights)
        score = composite_score(components, cfg.weights)

        is_executable = (
            profit.is_profitable
            and liquidity_valid
            and risk.is_acceptable
            and score >= cfg.executable_score_threshold
        )
        recommendation = recommend(score, risk.level) if is_executable else Recommendation.DO_NOT_EXECUTE

        execution_plan = None
        if is_executable:
            execution_plan = build_execution_plan(
                request.token, amount, legs, (request.buy.network, request.sell.network),
                request.is_cross_chain, profit, gas_strategy, max_time_s,
            )

        return FinalAssessment(
            composite_score=score,
            components=components,
            is_executable=is_executable,
            recommendation=recommendation,
            critical_factors=identify_critical_factors(
                spread, legs, gas, profit, risk, score, request.is_cross_chain, cfg
            ),
            execution_plan=execution_plan,
            alternatives=suggest_alternatives(amount, legs, risk, gas_strategy, request.is_cross_chain),
        )

    # ------------------------------------------------------------------
    # Batch and what-if
    # ------------------------------------------------------------------

    async def scan_and_analyze(
        self,
        tokens: Sequence[str],
        amount=1000,
        max_results: int = 10,
        constraints: Optional[Union[Mapping[str, Any], AnalysisConstraints]] = None
    ) -> BatchAnalysis:
        """
        Scan ``tokens``, analyze the best simple opportunities concurrently
        and rank the executable ones by composite score.

        Raises:
            InvalidInput: if no scanner is configured
        """
        if self.scanner is None:
            raise InvalidInput("scan_and_analyze requires a scanner", stage="scan")

        started = time.perf_counter()
        scan = await self.scanner.scan_multiple_tokens(tokens, amount, concurrent=True)
        candidates = [o for o in scan.top_opportunities if o.type == OpportunityType.SIMPLE][:max_results]

        outcomes = await asyncio.gather(
            *(self.analyze_opportunity(opp, amount, constraints) for opp in candidates),
            return_exceptions=True,
        )

        analyzed: List[Tuple[Opportunity, AnalysisResult]] = []
        errors: Dict[str, str] = {}
        for opp, outcome in zip(candidates, outcomes):
            if isinstance(outcome, Exception):
                logger.warning(f"Could not analyze {opp.id}: {outcome}")
                errors[opp.id] = str(outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            elif not outcome.success:
                errors[opp.id] = f"{outcome.error.stage}: {outcome.error.message}"
            else:
                analyzed.append((opp, outcome))

        ranked = self.rank_by_viability(analyzed)

        return BatchAnalysis(
            scan_summary=scan,
            analyzed=len(analyzed),
            ranked=ranked,
            recommendations=self._portfolio_recommendations(ranked, len(analyzed)),
            errors=errors,
            analysis_time_ms=(time.perf_counter() - started) * 1000,
        )

    @staticmethod
    def rank_by_viability(analyzed: Sequence[Tuple[Opportunity, AnalysisResult]]) -> Tuple[RankedOpportunity, ...]:
        """Executable opportunities by descending composite score, tiered PREMIUM / GOOD / ACCEPTABLE."""
        executable = [(opp, result) for opp, result in analyzed if result.is_executable]
        executable.sort(key=lambda item: item[1].composite_score, reverse=True)
        return tuple(
            RankedOpportunity(opportunity=opp, result=result, rank=index + 1, tier=viability_tier(index))
            for index, (opp, result) in enumerate(executable)
        )

    @staticmethod
    def _portfolio_recommendations(ranked: Sequence[RankedOpportunity], analyzed: int) -> Dict[str, Any]:
        tiers = {tier.value: 0 for tier in ViabilityTier}
        for item in ranked:
            tiers[item.tier.value] += 1

        expected = sum(
            (item.result.analysis.final.execution_plan.expected_net_profit for item in ranked),
            ZERO,
        )

        if not ranked:
            action = "NO_ACTION"
        elif any(item.recommendation == Recommendation.EXECUTE_IMMEDIATELY for item in ranked):
            action = "EXECUTE_TOP_OPPORTUNITIES"
        else:
            action = "EXECUTE_SELECTIVELY"

        return {
            "analyzed": analyzed,
            "executable": len(ranked),
            "tiers": tiers,
            "best_opportunity": ranked[0].opportunity.id if ranked else None,
            "expected_net_profit": expected,
            "action": action,
        }

    async def simulate_scenarios(
        self,
        opportunity_data: OpportunityData,
        scenarios: Sequence[Union[Mapping[str, Any], Scenario]]
    ) -> ScenarioSimulation:
        """
        Re-run the pipeline on modified copies of one opportunity.

        Each scenario may scale the buy and sell prices, replace market
        conditions, override configuration values (dotted keys for nested
        sections) and set its own constraints.

        Raises:
            InvalidInput: on a malformed opportunity, scenario or override key
        """
        request = self.parse_request(opportunity_data)
        parsed = [self._parse_scenario(s) for s in scenarios]

        outcomes: List[ScenarioOutcome] = []
        for scenario in parsed:
            try:
                cfg = self.config.with_overrides(scenario.config_overrides)
            except (TypeError, AttributeError) as e:
                raise InvalidInput(
                    f"Scenario '{scenario.name}' has an unknown config override: {e}", stage="input"
                ) from e

            result = await self.analyze_opportunity(
                scenario.apply(request), scenario.trade_amount, scenario.constraints, cfg
            )
            outcomes.append(ScenarioOutcome(
                name=scenario.name, scenario=scenario, result=result, viable=result.is_executable
            ))

        viable = [o for o in outcomes if o.viable]
        best = max(viable, key=lambda o: o.result.composite_score) if viable else None

        return ScenarioSimulation(
            base=request,
            outcomes=tuple(outcomes),
            best_scenario=best,
            risk_analysis=self._scenario_risk(outcomes),
        )

    @staticmethod
    def _parse_scenario(scenario) -> Scenario:
        if isinstance(scenario, Scenario):
            return scenario
        try:
            return Scenario.model_validate(scenario)
        except ValidationError as e:
            raise InvalidInput(f"Malformed scenario: {e}", stage="input") from e

    @staticmethod
    def _scenario_risk(outcomes: Sequence[ScenarioOutcome]) -> Dict[str, Any]:
        successful = [o for o in outcomes if o.result.success]
        viable = sum(1 for o in outcomes if o.viable)
        scores = [o.result.composite_score for o in successful]
        risk_scores = [o.result.analysis.risk.total_score for o in successful]
        levels = [o.result.analysis.risk.level for o in successful]
        level_order = list(RiskLevel)

        return {
            "scenarios": len(outcomes),
            "viable": viable,
            "failed": len(outcomes) - len(successful),
            "viability_rate": viable / len(outcomes) if outcomes else 0.0,
            "score_range": (min(scores), max(scores)) if scores else None,
            "average_risk_score": sum(risk_scores) / len(risk_scores) if risk_scores else None,
            "worst_risk_level": max(levels, key=level_order.index).value if levels else None,
            "worst_scenario": min(successful, key=lambda o: o.result.composite_score).name if successful else None,
        }

    # ------------------------------------------------------------------
    # Observability and calibration
    # ------------------------------------------------------------------

    def _update_metrics(self, elapsed_ms: float, success: bool) -> None:
        m = self.metrics
        m["calculations_performed"] += 1
        n = m["calculations_performed"]
        m["average_execution_time_ms"] += (elapsed_ms - m["average_execution_time_ms"]) / n
        if success:
            m["successful"] += 1
        else:
            m["errors_count"] += 1
        m["success_rate"] = m["successful"] / n

    def reset_metrics(self) -> None:
        self.metrics = {
            "calculations_performed": 0,
            "successful": 0,
            "errors_count": 0,
            "success_rate": 0.0,
            "average_execution_time_ms": 0.0,
            "last_reset": self.clock(),
        }

    def calibrate(self, volatility) -> AnalysisConfig:
        """
        Adjust the default configuration to observed market volatility.

        A volatile market (> 5%) raises the minimum spread to 0.2%;
        otherwise it is 0.1%. Returns the new configuration.
        """
        vol = float(require_non_negative(volatility, "volatility", stage="calibration"))
        min_spread = Decimal("0.2") if vol > 0.05 else Decimal("0.1")
        self.config = replace(self.config, min_spread_percentage=min_spread, default_volatility=vol)
        self.last_calibration = self.clock()
        logger.info(f"Calibrated for volatility {vol:.4f}: min spread {min_spread}%")
        return self.config

    def get_engine_stats(self) -> Dict[str, Any]:
        components: Dict[str, Any] = {
            "liquidity_validator": self.liquidity_validator.get_validator_stats(),
            "risk_scorer": self.risk_scorer.get_scorer_stats(),
        }
        if hasattr(self.gas_estimator, "get_estimator_stats"):
            components["gas_estimator"] = self.gas_estimator.get_estimator_stats()
        if self.scanner is not None:
            components["opportunity_scanner"] = self.scanner.get_scanner_stats()

        return {
            "config": {
                "min_spread_percentage": str(self.config.min_spread_percentage),
                "executable_score_threshold": self.config.executable_score_threshold,
                "max_data_age_seconds": self.config.max_data_age_seconds,
                "real_data_only": self.config.real_data_only,
                "max_price_impact": str(self.config.liquidity.max_price_impact),
                "default_volatility": self.config.default_volatility,
                "last_calibration": self.last_calibration,
            },
            "metrics": dict(self.metrics),
            "components": components,
        }
