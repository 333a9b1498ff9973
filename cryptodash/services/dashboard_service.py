"""Dashboard orchestration: stale-while-revalidate over the disk snapshot."""

import time
from dataclasses import dataclass
from typing import Any, Callable

from cryptodash.models.market_data import EnrichedRecord, OversoldRecord
from cryptodash.services.enrichment import EnrichmentPipeline
from cryptodash.services.errors import RefreshFailed
from cryptodash.services.market_data_aggregator import MarketDataAggregator
from cryptodash.services.snapshot_store import SnapshotStore
from cryptodash.utils.event_store import REFRESH_COMPLETE, EventStore
from cryptodash.utils.logger import StructuredLogger

# Schedules a coroutine function to run after the response is sent,
# e.g. fastapi.BackgroundTasks.add_task
Defer = Callable[..., Any]


@dataclass
class DashboardResponse:
    """Body of GET /api/dashboard."""

    results: list[EnrichedRecord]
    from_cache: bool
    last_update: str | None = None

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "count": len(self.results),
            "results": [record.to_dict() for record in self.results],
            "fromCache": self.from_cache,
        }
        if self.last_update is not None:
            body["lastUpdate"] = self.last_update
        return body


class DashboardService:
    """Serves dashboard, oversold and history requests."""

    def __init__(
        self,
        market_data: MarketDataAggregator,
        pipeline: EnrichmentPipeline,
        snapshots: SnapshotStore,
        event_store: EventStore | None = None,
    ):
        self.market_data = market_data
        self.pipeline = pipeline
        self.snapshots = snapshots
        self.event_store = event_store
        self.logger = StructuredLogger("DashboardService")

    async def dashboard(self, ids: list[str], defer: Defer) -> DashboardResponse:
        """
        Answer from the snapshot when possible, refreshing afterwards.

        If the snapshot holds any requested instrument, those records are
        returned right away and a refresh is handed to ``defer``; its failure
        is only logged. Otherwise the refresh runs inline and its failure
        propagates to the caller.

        Args:
            ids: Requested instrument ids
            defer: Schedules the background refresh after the response is sent

        Raises:
            MarketDataError: If there is no cached data and the refresh fails
        """
        snapshot = await self.snapshots.load()
        cached = snapshot.select(ids)

        if cached:
            self.logger.info(
                "Serving cached data while refreshing",
                context={"records": len(cached), "last_update": snapshot.last_update},
            )
            defer(self.revalidate, ids)
            return DashboardResponse(results=cached, from_cache=True, last_update=snapshot.last_update)

        records = await self.refresh(ids)
        return DashboardResponse(results=records, from_cache=False)

    async def refresh(self, ids: list[str]) -> list[EnrichedRecord]:
        """
        Run one refresh cycle and persist a non-empty result.

        Raises:
            UpstreamError: If the batched quote call fails
            RefreshFailed: If no records were produced
        """
        start = time.perf_counter()
        try:
            quotes = await self.market_data.fetch_quotes(ids)
            records = await self.pipeline.enrich(quotes)
            if not records:
                raise RefreshFailed("No data was obtained to update the cache")
        except Exception as e:
            self._record_refresh(start, ids, status="failed", error=str(e))
            raise

        await self.snapshots.save(records)
        self._record_refresh(start, ids, status="success", records=len(records))
        return records

    async def revalidate(self, ids: list[str]) -> None:
        """Background refresh; the response was already sent, so failures are only logged."""
        try:
            await self.refresh(ids)
        except Exception as e:
            self.logger.error(
                "Error refreshing data in background", context={"ids": ids}, exception=e
            )

    async def warm(self, ids: list[str]) -> bool:
        """Scheduled refresh. Returns whether it succeeded."""
        try:
            await self.refresh(ids)
        except Exception as e:
            self.logger.warning("Scheduled warm-up failed", context={"ids": ids, "error": str(e)})
            return False
        return True

    async def oversold(self, ids: list[str], threshold: float) -> list[OversoldRecord]:
        """
        Instruments whose 24h RSI is below ``threshold``, lowest first.

        Only the 24h series is fetched and the filtered list is not cached.
        """
        self.logger.info("Searching for oversold coins", context={"threshold": threshold})
        quotes = await self.market_data.fetch_quotes(ids)
        records = await self.pipeline.short_horizon(quotes)

        oversold = [
            OversoldRecord(
                id=record.quote.id,
                symbol=record.quote.symbol,
                name=record.quote.name,
                price=record.quote.price,
                rsi=round(record.rsi, 2),
                change24h=record.quote.change24h,
                sparkline=record.spark24h,
            )
            for record in records
            if record.rsi is not None and record.rsi < threshold
        ]
        return sorted(oversold, key=lambda record: record.rsi)

    async def history(self, coin_id: str, days: str | int, interval: str) -> dict[str, Any]:
        return await self.market_data.fetch_history(coin_id, days, interval)

    def _record_refresh(self, start: float, ids: list[str], **context: Any) -> None:
        duration_ms = (time.perf_counter() - start) * 1000
        if context.get("status") == "success":
            self.logger.info("Data refreshed", context={**context, "duration_ms": round(duration_ms, 1)})
        if self.event_store is not None:
            self.event_store.add_event(
                event_type=REFRESH_COMPLETE,
                component="DashboardService",
                message=f"Refresh of {len(ids)} instruments",
                context=context,
                duration_ms=duration_ms,
            )
