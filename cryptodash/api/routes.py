"""API routes for the dashboard, oversold scan and coin history."""

import math
from typing import Literal, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query

from cryptodash.api.dependencies import Services, get_dashboard_service, get_services
from cryptodash.services.dashboard_service import DashboardService
from cryptodash.utils.config import config

router = APIRouter()


def parse_ids(raw: Optional[str], default: list[str]) -> list[str]:
    """Split a comma-separated id list, falling back to ``default`` when empty."""
    if raw is None:
        return list(default)
    ids = [item.strip() for item in raw.split(",") if item.strip()]
    return ids or list(default)


def parse_threshold(raw: Optional[str], default: float) -> float:
    """Parse the RSI threshold; missing, non-numeric, non-finite or zero values use ``default``."""
    try:
        value = float(raw) if raw is not None else 0.0
    except ValueError:
        return default
    if not math.isfinite(value) or value == 0:
        return default
    return value


@router.get("")
async def liveness():
    """Liveness probe."""
    return {"ok": True, "service": config.server.service_name}


@router.get("/dashboard")
async def get_dashboard(
    background_tasks: BackgroundTasks,
    ids: Optional[str] = Query(None, description="Comma-separated coin ids"),
    service: DashboardService = Depends(get_dashboard_service),
):
    """
    Enriched market data for the requested coins.

    Served from the disk snapshot when it holds any requested coin
    (``fromCache: true``), with a refresh scheduled after the response.
    Otherwise the data is fetched inline (``fromCache: false``).
    """
    response = await service.dashboard(
        parse_ids(ids, config.enrichment.dashboard_ids), background_tasks.add_task
    )
    return response.to_dict()


@router.get("/oversold")
async def get_oversold(
    threshold: Optional[str] = Query(None, description="RSI threshold (default 30)"),
    ids: Optional[str] = Query(None, description="Comma-separated coin ids"),
    service: DashboardService = Depends(get_dashboard_service),
):
    """Coins whose 24h RSI is below the threshold, sorted ascending by RSI."""
    limit = parse_threshold(threshold, config.enrichment.oversold_threshold)
    results = await service.oversold(parse_ids(ids, config.enrichment.oversold_ids), limit)
    return {
        "count": len(results),
        "threshold": limit,
        "results": [record.to_dict() for record in results],
    }


@router.get("/coin/{coin_id}/history")
async def get_coin_history(
    coin_id: str,
    days: str = Query("90", pattern=r"^(\d+|max)$"),
    interval: Literal["daily", "hourly", "weekly"] = Query("daily"),
    service: DashboardService = Depends(get_dashboard_service),
):
    """Raw upstream chart ``{prices, market_caps, total_volumes}`` for one coin."""
    return await service.history(coin_id, days, interval)


@router.get("/metrics")
async def get_metrics(services: Services = Depends(get_services)):
    """Upstream, cache and refresh metrics plus queue and scheduler state."""
    return {
        "metrics": services.metrics.calculate().to_dict(),
        "cache": services.cache.stats(),
        "queue": {"pending": services.queue.pending, "running": services.queue.running},
        "scheduler": services.scheduler.get_status(),
    }
