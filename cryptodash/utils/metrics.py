"""Metrics calculator for aggregating event store data."""

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from cryptodash.utils.event_store import (
    CACHE_LOOKUP,
    REFRESH_COMPLETE,
    UPSTREAM_CALL,
    EventStore,
)


@dataclass
class Metrics:
    """Represents aggregated system metrics."""

    total_upstream_calls: int
    successful_upstream_calls: int
    failed_upstream_calls: int
    throttled_upstream_calls: int
    upstream_success_rate: float
    average_upstream_duration_ms: float
    cache_hits: int
    cache_misses: int
    cache_hit_rate: float
    total_refreshes: int
    successful_refreshes: int
    failed_refreshes: int
    average_refresh_duration_ms: float
    uptime_seconds: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _average(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _rate(part: int, total: int) -> float:
    return (part / total * 100) if total > 0 else 0.0


class MetricsCalculator:
    """Calculates metrics from event store data."""

    def __init__(self, event_store: EventStore, start_time: Optional[datetime] = None):
        """
        Initialize the metrics calculator.

        Args:
            event_store: The event store to calculate metrics from
            start_time: Optional start time for uptime calculation (defaults to now)
        """
        self.event_store = event_store
        self.start_time = start_time or datetime.now(timezone.utc)

    def calculate(self) -> Metrics:
        """
        Calculate metrics from the event store.

        Upstream calls count one event per HTTP attempt, so a throttled call
        that is retried contributes two events.
        """
        events = self.event_store.get_all_events()

        upstream_calls = [e for e in events if e.event_type == UPSTREAM_CALL]
        successful_calls = [e for e in upstream_calls if e.context.get("status") == "success"]
        throttled_calls = [e for e in upstream_calls if e.context.get("status_code") == 429]
        failed_calls = len(upstream_calls) - len(successful_calls)

        lookups = [e for e in events if e.event_type == CACHE_LOOKUP]
        cache_hits = len([e for e in lookups if e.context.get("hit")])
        cache_misses = len(lookups) - cache_hits

        refreshes = [e for e in events if e.event_type == REFRESH_COMPLETE]
        successful_refreshes = len([e for e in refreshes if e.context.get("status") == "success"])

        current_time = datetime.now(timezone.utc)
        uptime_seconds = int((current_time - self.start_time).total_seconds())

        return Metrics(
            total_upstream_calls=len(upstream_calls),
            successful_upstream_calls=len(successful_calls),
            failed_upstream_calls=failed_calls,
            throttled_upstream_calls=len(throttled_calls),
            upstream_success_rate=_rate(len(successful_calls), len(upstream_calls)),
            average_upstream_duration_ms=_average(
                [e.duration_ms for e in upstream_calls if e.duration_ms is not None]
            ),
            cache_hits=cache_hits,
            cache_misses=cache_misses,
            cache_hit_rate=_rate(cache_hits, len(lookups)),
            total_refreshes=len(refreshes),
            successful_refreshes=successful_refreshes,
            failed_refreshes=len(refreshes) - successful_refreshes,
            average_refresh_duration_ms=_average(
                [e.duration_ms for e in refreshes if e.duration_ms is not None]
            ),
            uptime_seconds=uptime_seconds,
        )
