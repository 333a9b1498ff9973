"""Pytest configuration and fixtures."""

import json
import math
import os
import re

import httpx
import pytest
from fastapi.testclient import TestClient

from cryptodash.api.dependencies import build_services
from cryptodash.utils.config import Config
from main import create_app

CHART_PATH = re.compile(r"/coins/(?P<coin>[^/]+)/market_chart$")


class FakeCoinGecko:
    """
    Stand-in for the CoinGecko API behind an httpx.MockTransport.

    Each coin has a price trend: "up", "down" or "wave". Requests are recorded
    so tests can count upstream calls.
    """

    def __init__(self):
        self.trends = {
            "bitcoin": "wave",
            "ethereum": "down",
            "solana": "up",
        }
        self.price_offset = 0.0
        self.unreachable = False
        self.status_overrides: dict[str, int] = {}
        self.requests: list[httpx.Request] = []

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls_to(self, fragment: str) -> int:
        return len([r for r in self.requests if fragment in str(r.url)])

    def price(self, coin: str) -> float:
        return {"bitcoin": 60000.0, "ethereum": 3000.0, "solana": 150.0}.get(coin, 1.0) + self.price_offset

    def series(self, coin: str, days: int) -> list[list[float]]:
        count = days * 24 + 1
        base = self.price(coin)
        trend = self.trends.get(coin, "wave")
        points = []
        for i in range(count):
            if trend == "up":
                value = base + i
            elif trend == "down":
                value = base - i
            else:
                value = base + 10 * math.sin(i / 2)
            points.append([1_700_000_000_000 + i * 3_600_000, value])
        return points

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.unreachable:
            raise httpx.ConnectError("upstream unreachable", request=request)

        for fragment, status_code in self.status_overrides.items():
            if fragment in str(request.url):
                return httpx.Response(status_code, json={"status": {"error_code": status_code}})

        path = request.url.path
        if path.endswith("/coins/markets"):
            ids = request.url.params.get("ids", "").split(",")
            rows = [
                {
                    "id": coin,
                    "symbol": coin[:3],
                    "name": coin.title(),
                    "image": f"https://img.example/{coin}.png",
                    "current_price": self.price(coin),
                    "price_change_percentage_24h_in_currency": 1.5,
                    "price_change_percentage_7d_in_currency": -2.0,
                    "price_change_percentage_30d_in_currency": 10.0,
                }
                for coin in ids
                if coin in self.trends
            ]
            return httpx.Response(200, json=rows)

        match = CHART_PATH.search(path)
        if match:
            coin = match.group("coin")
            days_param = request.url.params.get("days", "1")
            days = 90 if days_param == "max" else int(days_param)
            prices = self.series(coin, days)
            return httpx.Response(
                200,
                json={
                    "prices": prices,
                    "market_caps": [[ts, value * 1000] for ts, value in prices],
                    "total_volumes": [[ts, value * 10] for ts, value in prices],
                },
            )

        return httpx.Response(404, json={"error": "not found"})


@pytest.fixture
def fake_upstream():
    return FakeCoinGecko()


@pytest.fixture
def test_config(tmp_path):
    """Configuration isolated from the environment's snapshot file and timings."""
    cfg = Config()
    cfg.snapshot.path = str(tmp_path / "cache" / "market-data.json")
    cfg.upstream.min_interval = 0
    cfg.upstream.throttle_cooldown = 0
    cfg.server.static_dir = None
    cfg.scheduler.warmup_interval_minutes = 0
    return cfg


@pytest.fixture
def test_services(test_config, fake_upstream):
    return build_services(test_config, transport=fake_upstream.transport)


@pytest.fixture
def test_client(test_config, test_services):
    """Create a test client wired to the fake upstream."""
    app = create_app(test_config, services=test_services)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def write_snapshot(test_config):
    """Write a snapshot file directly, bypassing the store."""

    def _write(records: list[dict], last_update: str = "2024-01-01T00:00:00.000Z") -> None:
        path = test_config.snapshot.path
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as fh:
            json.dump({"lastUpdate": last_update, "data": records}, fh)

    return _write


@pytest.fixture
def sample_record():
    def _record(coin_id: str, price: float = 1.0) -> dict:
        return {
            "id": coin_id,
            "symbol": coin_id[:3].upper(),
            "name": coin_id.title(),
            "image": None,
            "price": price,
            "change24h": 0.5,
            "change7d": 1.0,
            "change30d": 2.0,
            "spark24h": [[1, price], [2, price]],
            "spark7d": [],
            "spark30d": [],
            "rsi": None,
        }

    return _record
