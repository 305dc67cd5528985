"""Quote feed backed by an HTTP JSON quote service."""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import aiohttp
from aiohttp import ClientTimeout
from pydantic import ValidationError

from ..core.models import PairQuote, PoolState, PriceQuote
from ..exceptions import ExternalCollaboratorError, ExternalCollaboratorTimeout
from .base import QuoteFeed, Venue

logger = logging.getLogger(__name__)


class HttpQuoteFeed(QuoteFeed):
    """
    Reads quotes from a JSON service.

    Endpoints:
        GET {base_url}/quotes?token=&venue=&network=   -> list of quotes
        GET {base_url}/pools?venue=&network=&token_in=&token_out= -> pool state
        GET {base_url}/pairs?base=&quote=&venue=&network= -> list of pair quotes

    Rate-limited (429) and server errors (5xx) are retried with exponential
    backoff; anything else fails the call.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        request_timeout: float = 5.0,
        max_retries: int = 2,
        retry_delay: float = 0.5
    ):
        """
        Initialize the HTTP feed.

        Args:
            base_url: Quote service base URL
            api_key: Optional API key sent as ``x-api-key``
            request_timeout: Total timeout per request (seconds)
            max_retries: Retry attempts on 429/5xx/timeouts
            retry_delay: Base delay between retries (seconds)
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.request_timeout = request_timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.session: Optional[aiohttp.ClientSession] = None

    async def initialize(self) -> None:
        """Open the HTTP session."""
        if self.session is not None:
            return
        headers = {"accept": "application/json"}
        if self.api_key:
            headers["x-api-key"] = self.api_key
        self.session = aiohttp.ClientSession(
            headers=headers,
            timeout=ClientTimeout(total=self.request_timeout),
        )

    async def close(self) -> None:
        if self.session:
            await self.session.close()
            self.session = None

    async def _get_json(self, path: str, params: Dict[str, str], venue: Optional[str] = None) -> Any:
        await self.initialize()
        url = f"{self.base_url}{path}"

        for attempt in range(self.max_retries + 1):
            try:
                async with self.session.get(url, params=params) as response:
                    if response.status == 200:
                        return await response.json()

                    retryable = response.status == 429 or response.status >= 500
                    if retryable and attempt < self.max_retries:
                        wait_time = self.retry_delay * (2 ** attempt)
                        logger.warning(
                            f"Quote service returned {response.status} for {path}, "
                            f"retrying in {wait_time:.1f}s (attempt {attempt + 1})"
                        )
                        await asyncio.sleep(wait_time)
                        continue

                    raise ExternalCollaboratorError(
                        f"Quote service error {response.status} for {path}",
                        stage="fetch",
                        venue=venue,
                    )

            except asyncio.TimeoutError as e:
                if attempt < self.max_retries:
                    wait_time = self.retry_delay * (2 ** attempt)
                    logger.warning(f"Quote request timeout for {path}, retrying in {wait_time:.1f}s")
                    await asyncio.sleep(wait_time)
                    continue
                raise ExternalCollaboratorTimeout(
                    f"Quote request to {path} timed out",
                    timeout_seconds=self.request_timeout,
                    stage="fetch",
                    venue=venue,
                ) from e

            except aiohttp.ClientError as e:
                if attempt < self.max_retries:
                    wait_time = self.retry_delay * (2 ** attempt)
                    logger.warning(f"Quote request failed: {e}, retrying in {wait_time:.1f}s")
                    await asyncio.sleep(wait_time)
                    continue
                raise ExternalCollaboratorError(
                    f"Quote request to {path} failed: {e}", stage="fetch", venue=venue
                ) from e

        raise ExternalCollaboratorError(f"Quote request to {path} exhausted retries", stage="fetch", venue=venue)

    async def get_quotes(self, token: str, venues: Sequence[Venue]) -> List[PriceQuote]:
        quotes: List[PriceQuote] = []
        for venue in venues:
            data = await self._get_json(
                "/quotes",
                {"token": token, "venue": venue.name, "network": venue.network},
                venue=venue.name,
            )
            for item in data or []:
                item.setdefault("venue", venue.name)
                item.setdefault("network", venue.network)
                item.setdefault("protocol", venue.protocol)
                item.setdefault("fee_rate", str(venue.fee_rate))
                item.setdefault("reliability", venue.reliability)
                quotes.append(self._parse(PriceQuote, item, venue.name))
        return quotes

    async def get_pool_state(
        self,
        venue: str,
        pair: Tuple[str, str],
        network: Optional[str] = None
    ) -> PoolState:
        params = {"venue": venue, "token_in": pair[0], "token_out": pair[1]}
        if network:
            params["network"] = network
        data = await self._get_json("/pools", params, venue=venue)
        if not isinstance(data, dict):
            raise ExternalCollaboratorError("Malformed pool response", stage="fetch", venue=venue)
        data.setdefault("venue", venue)
        return self._parse(PoolState, data, venue)

    async def get_pair_quotes(self, base: str, quote: str, venues: Sequence[Venue]) -> List[PairQuote]:
        quotes: List[PairQuote] = []
        for venue in venues:
            data = await self._get_json(
                "/pairs",
                {"base": base, "quote": quote, "venue": venue.name, "network": venue.network},
                venue=venue.name,
            )
            for item in data or []:
                item.setdefault("venue", venue.name)
                item.setdefault("network", venue.network)
                item.setdefault("base", base)
                item.setdefault("quote", quote)
                quotes.append(self._parse(PairQuote, item, venue.name))
        return quotes

    @staticmethod
    def _parse(model, item: Dict[str, Any], venue: str):
        try:
            return model.model_validate(item)
        except ValidationError as e:
            raise ExternalCollaboratorError(
                f"Malformed {model.__name__} from quote service: {e.error_count()} errors",
                stage="fetch",
                venue=venue,
            ) from e
