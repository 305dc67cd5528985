"""Unit tests for the HTTP quote feed."""
import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, Mock, patch

from arbitrage_engine.core.models import PoolFamily
from arbitrage_engine.exceptions import ExternalCollaboratorError
from arbitrage_engine.feeds.base import QuoteFeed, Venue
from arbitrage_engine.feeds.http_feed import HttpQuoteFeed


class FakeResponse:
    def __init__(self, status, payload=None):
        self.status = status
        self.json = AsyncMock(return_value=payload)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


@pytest.fixture
def feed():
    return HttpQuoteFeed("https://quotes.example.org/", max_retries=2, retry_delay=0)


@pytest.fixture
def uniswap():
    return Venue(name="Uniswap V2", network="ethereum", protocol="uniswap_v2", reliability=0.95)


class TestParsing:
    """Test response parsing with the transport patched out."""

    @pytest.mark.asyncio
    async def test_quotes_inherit_venue_defaults(self, feed, uniswap):
        with patch.object(feed, "_get_json", AsyncMock(return_value=[{"price": "2000.5", "timestamp": 1}])):
            quotes = await feed.get_quotes("WETH", [uniswap])

        assert len(quotes) == 1
        quote = quotes[0]
        assert quote.venue == "Uniswap V2"
        assert quote.network == "ethereum"
        assert quote.protocol == "uniswap_v2"
        assert quote.price == Decimal("2000.5")
        assert quote.reliability == 0.95

    @pytest.mark.asyncio
    async def test_malformed_quote(self, feed, uniswap):
        with patch.object(feed, "_get_json", AsyncMock(return_value=[{"price": "-1"}])):
            with pytest.raises(ExternalCollaboratorError) as exc_info:
                await feed.get_quotes("WETH", [uniswap])

        assert exc_info.value.venue == "Uniswap V2"

    @pytest.mark.asyncio
    async def test_pool_state(self, feed):
        payload = {"family": "constant_product", "reserve_in": "1000", "reserve_out": "2000"}
        with patch.object(feed, "_get_json", AsyncMock(return_value=payload)) as mock_get:
            pool = await feed.get_pool_state("SushiSwap", ("USDC", "WETH"), network="ethereum")

        assert pool.family == PoolFamily.CONSTANT_PRODUCT
        assert pool.venue == "SushiSwap"
        assert mock_get.call_args.args[1]["network"] == "ethereum"

    @pytest.mark.asyncio
    async def test_pool_state_must_be_object(self, feed):
        with patch.object(feed, "_get_json", AsyncMock(return_value=[])):
            with pytest.raises(ExternalCollaboratorError):
                await feed.get_pool_state("SushiSwap", ("USDC", "WETH"))

    @pytest.mark.asyncio
    async def test_pair_quotes(self, feed, uniswap):
        with patch.object(feed, "_get_json", AsyncMock(return_value=[{"rate": "2040"}])):
            quotes = await feed.get_pair_quotes("WETH", "DAI", [uniswap])

        assert quotes[0].base == "WETH"
        assert quotes[0].quote == "DAI"
        assert quotes[0].rate == Decimal("2040")


class TestTransport:
    """Test retries against a fake session."""

    @pytest.mark.asyncio
    async def test_server_error_retried(self, feed):
        feed.session = Mock()
        feed.session.get = Mock(side_effect=[FakeResponse(503), FakeResponse(200, [])])

        assert await feed._get_json("/quotes", {"token": "WETH"}) == []
        assert feed.session.get.call_count == 2

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, feed):
        feed.session = Mock()
        feed.session.get = Mock(return_value=FakeResponse(404))

        with pytest.raises(ExternalCollaboratorError) as exc_info:
            await feed._get_json("/quotes", {"token": "WETH"}, venue="Uniswap V2")

        assert feed.session.get.call_count == 1
        assert exc_info.value.stage == "fetch"

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, feed):
        feed.session = Mock()
        feed.session.get = Mock(return_value=FakeResponse(429))

        with pytest.raises(ExternalCollaboratorError):
            await feed._get_json("/quotes", {})

        assert feed.session.get.call_count == 3


class TestQuoteFeedContract:
    """Test that feeds must implement every quote method."""

    def test_pair_quotes_required(self):
        class QuotesOnlyFeed(QuoteFeed):
            async def get_quotes(self, token, venues):
                return []

            async def get_pool_state(self, venue, pair, network=None):
                raise NotImplementedError

        with pytest.raises(TypeError):
            QuotesOnlyFeed()

    def test_bundled_feeds_are_complete(self, feed):
        assert isinstance(feed, QuoteFeed)
        assert "get_pair_quotes" not in HttpQuoteFeed.__abstractmethods__
