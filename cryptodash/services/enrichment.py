"""Bounded-concurrency enrichment of quotes with price series and RSI."""

import asyncio
from typing import Awaitable, Callable, Protocol, Sequence, TypeVar

from cryptodash.models.market_data import (
    HORIZON_DAYS,
    EnrichedRecord,
    Quote,
    Series,
    series_values,
)
from cryptodash.services.indicators import DEFAULT_RSI_PERIOD, rsi
from cryptodash.utils.config import config
from cryptodash.utils.logger import StructuredLogger

T = TypeVar("T")
R = TypeVar("R")

ALL_HORIZONS = ("24h", "7d", "30d")
SHORT_HORIZON = ("24h",)


class SeriesSource(Protocol):
    async def fetch_series(self, coin_id: str, days: int) -> Series: ...


async def bounded_map(
    items: Sequence[T], worker: Callable[[T], Awaitable[R]], limit: int
) -> list[R]:
    """
    Run ``worker`` over ``items`` with at most ``limit`` calls in flight.

    Results are returned in input order regardless of completion order.
    """
    semaphore = asyncio.Semaphore(limit)

    async def run(item: T) -> R:
        async with semaphore:
            return await worker(item)

    return list(await asyncio.gather(*(run(item) for item in items)))


class EnrichmentPipeline:
    """Turns a batch of quotes into enriched records, a few instruments at a time."""

    def __init__(
        self,
        source: SeriesSource,
        concurrency: int | None = None,
        rsi_period: int = DEFAULT_RSI_PERIOD,
    ):
        """
        Initialize the pipeline.

        Args:
            source: Provides down-sampled series (normally the MarketDataAggregator)
            concurrency: Maximum instruments enriched at once
            rsi_period: Lookback window of the RSI computed on the 24h series
        """
        self.source = source
        self.concurrency = concurrency or config.enrichment.concurrency
        self.rsi_period = rsi_period
        self.logger = StructuredLogger("EnrichmentPipeline")

    async def enrich(
        self, quotes: Sequence[Quote], horizons: Sequence[str] = ALL_HORIZONS
    ) -> list[EnrichedRecord]:
        """
        Enrich every quote with its series for the given horizons and the 24h RSI.

        A failed series fetch leaves that horizon empty; it never fails the batch.

        Args:
            quotes: Base quotes from one batched markets call
            horizons: Series to fetch per instrument

        Returns:
            One record per quote, in the order of ``quotes``
        """
        self.logger.info(
            "Fetching series for instruments",
            context={"instruments": len(quotes), "horizons": list(horizons), "concurrency": self.concurrency},
        )
        return await bounded_map(
            quotes, lambda quote: self._enrich_one(quote, horizons), self.concurrency
        )

    async def short_horizon(self, quotes: Sequence[Quote]) -> list[EnrichedRecord]:
        """Enrich with the 24h series only, which is all the RSI needs."""
        return await self.enrich(quotes, SHORT_HORIZON)

    async def _enrich_one(self, quote: Quote, horizons: Sequence[str]) -> EnrichedRecord:
        fetched = await asyncio.gather(
            *(self._series_or_empty(quote.id, horizon) for horizon in horizons)
        )
        series = dict(zip(horizons, fetched))
        spark24h = series.get("24h", [])
        return EnrichedRecord(
            quote=quote,
            spark24h=spark24h,
            spark7d=series.get("7d", []),
            spark30d=series.get("30d", []),
            rsi=rsi(series_values(spark24h), self.rsi_period),
        )

    async def _series_or_empty(self, coin_id: str, horizon: str) -> Series:
        try:
            return await self.source.fetch_series(coin_id, HORIZON_DAYS[horizon])
        except Exception as e:
            self.logger.warning(
                "Could not fetch series, using empty data",
                context={"coin_id": coin_id, "horizon": horizon, "error": str(e)},
            )
            return []
