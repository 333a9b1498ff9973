"""Service construction and FastAPI dependencies."""

from dataclasses import dataclass

import httpx
from fastapi import Request

from cryptodash.services.cache_store import CacheStore
from cryptodash.services.coingecko_client import CoinGeckoClient
from cryptodash.services.dashboard_service import DashboardService
from cryptodash.services.enrichment import EnrichmentPipeline
from cryptodash.services.market_data_aggregator import MarketDataAggregator
from cryptodash.services.request_queue import RequestQueue
from cryptodash.services.scheduler_service import SchedulerService
from cryptodash.services.snapshot_store import SnapshotStore
from cryptodash.utils.config import Config
from cryptodash.utils.event_store import EventStore
from cryptodash.utils.metrics import MetricsCalculator


@dataclass
class Services:
    """Every long-lived collaborator, owned by one application instance."""

    event_store: EventStore
    cache: CacheStore
    queue: RequestQueue
    client: CoinGeckoClient
    market_data: MarketDataAggregator
    pipeline: EnrichmentPipeline
    snapshots: SnapshotStore
    dashboard: DashboardService
    scheduler: SchedulerService
    metrics: MetricsCalculator


def build_services(cfg: Config, transport: httpx.AsyncBaseTransport | None = None) -> Services:
    """
    Wire the service graph from configuration.

    Args:
        cfg: Application configuration
        transport: Optional httpx transport for the upstream client (tests)
    """
    event_store = EventStore()
    cache = CacheStore(cfg.cache, event_store=event_store)
    queue = RequestQueue(min_interval=cfg.upstream.min_interval)
    client = CoinGeckoClient(cfg.upstream, event_store=event_store, transport=transport)
    market_data = MarketDataAggregator(
        client, queue, cache, settings=cfg.upstream, series_points=cfg.enrichment.series_points
    )
    pipeline = EnrichmentPipeline(
        market_data, concurrency=cfg.enrichment.concurrency, rsi_period=cfg.enrichment.rsi_period
    )
    snapshots = SnapshotStore(cfg.snapshot)
    dashboard = DashboardService(market_data, pipeline, snapshots, event_store=event_store)
    scheduler = SchedulerService(
        dashboard, cfg.enrichment.dashboard_ids, cfg.scheduler.warmup_interval_minutes
    )
    return Services(
        event_store=event_store,
        cache=cache,
        queue=queue,
        client=client,
        market_data=market_data,
        pipeline=pipeline,
        snapshots=snapshots,
        dashboard=dashboard,
        scheduler=scheduler,
        metrics=MetricsCalculator(event_store),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_dashboard_service(request: Request) -> DashboardService:
    return get_services(request).dashboard
