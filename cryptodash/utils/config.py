"""Configuration management for the application."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

DEFAULT_DASHBOARD_IDS = [
    "bitcoin",
    "ethereum",
    "solana",
    "cardano",
    "polkadot",
    "tron",
    "chainlink",
    "polygon",
]

DEFAULT_OVERSOLD_IDS = DEFAULT_DASHBOARD_IDS + ["avalanche", "cosmos"]

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ServerConfig:
    """HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = 3000
    environment: str = "development"
    service_name: str = "crypto-backend"
    static_dir: str | None = None

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@dataclass
class UpstreamConfig:
    """CoinGecko API configuration."""

    base_url: str = "https://api.coingecko.com/api/v3"
    vs_currency: str = "usd"
    timeout: float = 5.0
    throttle_cooldown: float = 60.0  # Seconds to wait after a 429 before the single retry
    min_interval: float = 1.1  # Minimum seconds between the starts of two upstream calls
    user_agent: str = "Crypto Dashboard/1.0"


@dataclass
class TTLClassConfig:
    """Capacity and expiry of one memory cache partition."""

    maxsize: int
    ttl: float


@dataclass
class CacheConfig:
    """Memory cache configuration, one entry per TTL class."""

    quotes: TTLClassConfig = field(default_factory=lambda: TTLClassConfig(maxsize=100, ttl=120))
    series: TTLClassConfig = field(default_factory=lambda: TTLClassConfig(maxsize=500, ttl=900))
    history: TTLClassConfig = field(default_factory=lambda: TTLClassConfig(maxsize=200, ttl=600))

    def classes(self) -> dict[str, TTLClassConfig]:
        return {"quotes": self.quotes, "series": self.series, "history": self.history}


@dataclass
class SnapshotConfig:
    """Disk snapshot configuration."""

    path: str = "cache/market-data.json"
    stale_after_minutes: int = 5


@dataclass
class EnrichmentConfig:
    """Enrichment pipeline configuration."""

    concurrency: int = 3
    series_points: int = 48
    rsi_period: int = 14
    dashboard_ids: list[str] = field(default_factory=lambda: list(DEFAULT_DASHBOARD_IDS))
    oversold_ids: list[str] = field(default_factory=lambda: list(DEFAULT_OVERSOLD_IDS))
    oversold_threshold: float = 30.0


@dataclass
class SchedulerConfig:
    """Background warm-up configuration."""

    warmup_interval_minutes: int = 0  # 0 disables the warm-up job


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Config:
    """Main application configuration."""

    def __init__(self):
        self.server = ServerConfig(
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3000")),
            environment=os.getenv("ENVIRONMENT", os.getenv("NODE_ENV", "development")).lower(),
            service_name=os.getenv("SERVICE_NAME", "crypto-backend"),
            static_dir=os.getenv(
                "STATIC_DIR",
                str(Path(__file__).resolve().parents[2] / "dist" / "crypto-dashboard" / "browser"),
            ),
        )

        self.upstream = UpstreamConfig(
            base_url=os.getenv("COINGECKO_BASE_URL", "https://api.coingecko.com/api/v3").rstrip("/"),
            vs_currency=os.getenv("VS_CURRENCY", "usd"),
            timeout=float(os.getenv("UPSTREAM_TIMEOUT", "5")),
            throttle_cooldown=float(os.getenv("UPSTREAM_THROTTLE_COOLDOWN", "60")),
            min_interval=float(os.getenv("UPSTREAM_MIN_INTERVAL", "1.1")),
        )

        self.cache = CacheConfig(
            quotes=TTLClassConfig(
                maxsize=int(os.getenv("CACHE_QUOTES_MAXSIZE", "100")),
                ttl=float(os.getenv("CACHE_QUOTES_TTL", "120")),
            ),
            series=TTLClassConfig(
                maxsize=int(os.getenv("CACHE_SERIES_MAXSIZE", "500")),
                ttl=float(os.getenv("CACHE_SERIES_TTL", "900")),
            ),
            history=TTLClassConfig(
                maxsize=int(os.getenv("CACHE_HISTORY_MAXSIZE", "200")),
                ttl=float(os.getenv("CACHE_HISTORY_TTL", "600")),
            ),
        )

        self.snapshot = SnapshotConfig(
            path=os.getenv("SNAPSHOT_PATH", "cache/market-data.json"),
            stale_after_minutes=int(os.getenv("SNAPSHOT_STALE_MINUTES", "5")),
        )

        self.enrichment = EnrichmentConfig(
            concurrency=int(os.getenv("ENRICHMENT_CONCURRENCY", "3")),
            series_points=int(os.getenv("SERIES_POINTS", "48")),
            rsi_period=int(os.getenv("RSI_PERIOD", "14")),
            dashboard_ids=_env_list("DASHBOARD_IDS", DEFAULT_DASHBOARD_IDS),
            oversold_ids=_env_list("OVERSOLD_IDS", DEFAULT_OVERSOLD_IDS),
            oversold_threshold=float(os.getenv("OVERSOLD_THRESHOLD", "30")),
        )

        self.scheduler = SchedulerConfig(
            warmup_interval_minutes=int(os.getenv("WARMUP_INTERVAL_MINUTES", "0")),
        )

        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    def validate(self) -> bool:
        """
        Validate configuration.

        Returns:
            True if configuration is valid

        Raises:
            ValueError if configuration is invalid
        """
        if not (0 < self.server.port < 65536):
            raise ValueError(f"Invalid PORT: {self.server.port}")
        if self.upstream.timeout <= 0:
            raise ValueError("UPSTREAM_TIMEOUT must be positive")
        if self.upstream.min_interval < 0 or self.upstream.throttle_cooldown < 0:
            raise ValueError("Upstream spacing and cool-down must not be negative")

        for name, ttl_class in self.cache.classes().items():
            if ttl_class.maxsize <= 0 or ttl_class.ttl <= 0:
                raise ValueError(f"Invalid cache settings for TTL class '{name}'")

        if self.enrichment.concurrency < 1:
            raise ValueError("ENRICHMENT_CONCURRENCY must be at least 1")
        if self.enrichment.series_points < 1:
            raise ValueError("SERIES_POINTS must be at least 1")
        if self.enrichment.rsi_period < 1:
            raise ValueError("RSI_PERIOD must be at least 1")
        if self.scheduler.warmup_interval_minutes < 0:
            raise ValueError("WARMUP_INTERVAL_MINUTES must not be negative")
        if self.log_level not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid LOG_LEVEL: {self.log_level}")

        return True


# Global config instance
config = Config()
