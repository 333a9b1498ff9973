"""Cache-through access to CoinGecko quotes, price series and history charts."""

from typing import Any, Callable, Hashable
from urllib.parse import quote, urlencode

from pydantic import ValidationError

from cryptodash.models.market_data import Quote, Series
from cryptodash.models.upstream import MarketChart, MarketRow
from cryptodash.services.cache_store import HISTORY, QUOTES, SERIES, CacheStore
from cryptodash.services.coingecko_client import CoinGeckoClient
from cryptodash.services.errors import UpstreamSchemaError
from cryptodash.services.indicators import DEFAULT_POINTS, downsample
from cryptodash.services.request_queue import RequestQueue
from cryptodash.utils.config import UpstreamConfig, config
from cryptodash.utils.logger import StructuredLogger


class MarketDataAggregator:
    """
    Fetches market data through the memory cache, the request queue and the client.

    A cache hit never touches the queue. On a miss the upstream call is queued
    behind every other pending call, and the validated result is written back
    to the TTL class it belongs to.
    """

    def __init__(
        self,
        client: CoinGeckoClient,
        queue: RequestQueue,
        cache: CacheStore,
        settings: UpstreamConfig | None = None,
        series_points: int = DEFAULT_POINTS,
    ):
        """
        Initialize the aggregator.

        Args:
            client: Upstream HTTP client
            queue: Process-wide request queue shared by every caller
            cache: Memory cache holding the quotes, series and history classes
            settings: Upstream configuration (defaults to the global config)
            series_points: Maximum points kept per down-sampled series
        """
        self.client = client
        self.queue = queue
        self.cache = cache
        self.settings = settings or config.upstream
        self.series_points = series_points
        self.logger = StructuredLogger("MarketDataAggregator")

    async def _cached(
        self,
        ttl_class: str,
        key: Hashable,
        path: str,
        parse: Callable[[Any], Any],
    ) -> Any:
        cached = self.cache.get(ttl_class, key)
        if cached is not None:
            return cached

        payload = await self.queue.submit(lambda: self.client.fetch(path))
        value = parse(payload)
        self.cache.set(ttl_class, key, value)
        return value

    async def fetch_quotes(self, ids: list[str]) -> list[Quote]:
        """
        Fetch current quotes for all ids in one batched markets call.

        Rows that fail validation are skipped; quotes keep the upstream order.

        Raises:
            UpstreamError: If the markets call fails or is not a list
        """
        params = {
            "vs_currency": self.settings.vs_currency,
            "ids": ",".join(ids),
            "order": "market_cap_desc",
            "per_page": len(ids),
            "page": 1,
            "sparkline": "false",
            "price_change_percentage": "24h,7d,30d",
        }
        path = f"/coins/markets?{urlencode(params, safe=',')}"
        return await self._cached(QUOTES, tuple(ids), path, self._parse_quotes)

    async def fetch_series(self, coin_id: str, days: int) -> Series:
        """
        Fetch the price series of one coin over ``days`` days, down-sampled.

        Raises:
            UpstreamError: If the chart call fails or has an unexpected shape
        """
        params = {"vs_currency": self.settings.vs_currency, "days": days}
        path = f"/coins/{quote(coin_id, safe='')}/market_chart?{urlencode(params)}"
        return await self._cached(SERIES, (coin_id, days), path, self._parse_series)

    async def fetch_history(self, coin_id: str, days: str | int, interval: str) -> dict[str, Any]:
        """
        Fetch a raw market chart for one (id, days, interval) tuple.

        Returns:
            The upstream payload ``{prices, market_caps, total_volumes}`` unchanged
        """
        params = {"vs_currency": self.settings.vs_currency, "days": days, "interval": interval}
        path = f"/coins/{quote(coin_id, safe='')}/market_chart?{urlencode(params)}"
        return await self._cached(HISTORY, (coin_id, str(days), interval), path, self._check_chart)

    def _parse_quotes(self, payload: Any) -> list[Quote]:
        if not isinstance(payload, list):
            raise UpstreamSchemaError("Unexpected markets payload: expected a list")

        quotes = []
        for row in payload:
            try:
                quotes.append(MarketRow.model_validate(row).to_quote())
            except ValidationError as e:
                self.logger.warning(
                    "Skipping malformed market row",
                    context={"row_id": row.get("id") if isinstance(row, dict) else None, "errors": e.error_count()},
                )
        return quotes

    def _parse_series(self, payload: Any) -> Series:
        chart = self._validate_chart(payload)
        return downsample(chart.price_points(), self.series_points)

    def _check_chart(self, payload: Any) -> dict[str, Any]:
        self._validate_chart(payload)
        return payload

    @staticmethod
    def _validate_chart(payload: Any) -> MarketChart:
        try:
            return MarketChart.model_validate(payload)
        except ValidationError as e:
            raise UpstreamSchemaError(f"Unexpected market chart payload: {e.error_count()} errors") from e
