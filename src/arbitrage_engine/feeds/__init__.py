"""Price and liquidity feeds."""

from .base import (
    QuoteFeed,
    Venue,
    TokenConfig,
    DEFAULT_VENUES,
    MONITORED_TOKENS,
    REFERENCE_ASSET
)
from .snapshot_feed import SnapshotQuoteFeed
from .http_feed import HttpQuoteFeed

__all__ = [
    "QuoteFeed",
    "Venue",
    "TokenConfig",
    "DEFAULT_VENUES",
    "MONITORED_TOKENS",
    "REFERENCE_ASSET",
    "SnapshotQuoteFeed",
    "HttpQuoteFeed",
]
