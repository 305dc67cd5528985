"""Builds a fully wired engine from settings."""
import logging
from typing import Optional

from ..cache.redis_client import close_redis, init_redis
from ..cache.snapshot_cache import SnapshotCache
from ..config.analysis_config import AnalysisConfig
from ..config.settings import EngineSettings, settings as default_settings
from ..exceptions import InvalidInput
from ..feeds.base import QuoteFeed
from ..feeds.http_feed import HttpQuoteFeed
from ..gas.estimator import GasEstimator, NetworkGasEstimator
from ..scanner.opportunity_scanner import OpportunityScanner, decode_quotes, encode_quotes
from .orchestrator import AnalysisOrchestrator

logger = logging.getLogger(__name__)

CACHE_BACKENDS = ("memory", "redis")


async def create_engine(
    engine_settings: Optional[EngineSettings] = None,
    feed: Optional[QuoteFeed] = None,
    gas_estimator: Optional[GasEstimator] = None
) -> AnalysisOrchestrator:
    """
    Wire feed, cache, scanner, gas estimator and orchestrator.

    Without an explicit feed, an ``HttpQuoteFeed`` is created from
    ``quote_feed_url``. A Redis-backed cache is used when
    ``cache_backend`` is ``redis``.

    Raises:
        InvalidInput: if no feed can be built or the cache backend is unknown
    """
    s = engine_settings or default_settings
    config = AnalysisConfig.from_settings(s)

    if feed is None:
        if not s.quote_feed_url:
            raise InvalidInput("No quote feed: pass one or set ARB_QUOTE_FEED_URL", stage="setup")
        feed = HttpQuoteFeed(
            s.quote_feed_url,
            api_key=s.quote_feed_api_key,
            request_timeout=s.venue_timeout_seconds,
        )

    backend = s.cache_backend.lower()
    if backend not in CACHE_BACKENDS:
        raise InvalidInput(f"Unknown cache backend '{s.cache_backend}'", stage="setup")

    redis_client = await init_redis(s.redis_url) if backend == "redis" else None
    cache = SnapshotCache(
        ttl_seconds=config.scanner.cache_ttl_seconds,
        redis_client=redis_client,
        encoder=encode_quotes,
        decoder=decode_quotes,
    )

    scanner = OpportunityScanner(feed, config.scanner, cache=cache)
    engine = AnalysisOrchestrator(
        gas_estimator=gas_estimator or NetworkGasEstimator(),
        feed=feed,
        scanner=scanner,
        config=config,
    )
    logger.info(f"Engine ready: feed={type(feed).__name__} cache={backend}")
    return engine


async def shutdown_engine(engine: AnalysisOrchestrator) -> None:
    """Close the engine's feed and the shared Redis client."""
    if engine.feed is not None:
        await engine.feed.close()
    if engine.scanner is not None and engine.scanner.cache.redis_client is not None:
        await close_redis()
