"""Market data models for quotes, price series and enriched dashboard records."""

from dataclasses import dataclass, field
from typing import Any, Literal

Horizon = Literal["24h", "7d", "30d"]

# Upstream day ranges requested for each series horizon
HORIZON_DAYS: dict[str, int] = {"24h": 1, "7d": 7, "30d": 30}


@dataclass(frozen=True)
class SeriesPoint:
    """One (timestamp, value) sample; timestamps are upstream epoch milliseconds."""

    timestamp: float
    value: float

    def to_list(self) -> list[float]:
        return [self.timestamp, self.value]


Series = list[SeriesPoint]


def series_to_json(series: Series) -> list[list[float]]:
    return [point.to_list() for point in series]


def series_from_json(raw: Any) -> Series:
    """
    Parse a list of [timestamp, value] pairs.

    Raises:
        ValueError: If the payload is not a list of numeric pairs
    """
    if not isinstance(raw, list):
        raise ValueError("series must be a list")
    points = []
    for item in raw:
        if not isinstance(item, (list, tuple)) or len(item) != 2:
            raise ValueError(f"invalid series point: {item!r}")
        points.append(SeriesPoint(timestamp=float(item[0]), value=float(item[1])))
    return points


def series_values(series: Series) -> list[float]:
    return [point.value for point in series]


@dataclass
class Quote:
    """Current market quote for one instrument from the batched markets call."""

    id: str
    symbol: str
    name: str
    image: str | None
    price: float | None
    change24h: float | None = None
    change7d: float | None = None
    change30d: float | None = None


@dataclass
class EnrichedRecord:
    """A quote plus its three down-sampled series and the 24h RSI."""

    quote: Quote
    spark24h: Series = field(default_factory=list)
    spark7d: Series = field(default_factory=list)
    spark30d: Series = field(default_factory=list)
    rsi: float | None = None

    @property
    def id(self) -> str:
        return self.quote.id

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the dashboard JSON shape."""
        return {
            "id": self.quote.id,
            "symbol": self.quote.symbol,
            "name": self.quote.name,
            "image": self.quote.image,
            "price": self.quote.price,
            "change24h": self.quote.change24h,
            "change7d": self.quote.change7d,
            "change30d": self.quote.change30d,
            "spark24h": series_to_json(self.spark24h),
            "spark7d": series_to_json(self.spark7d),
            "spark30d": series_to_json(self.spark30d),
            "rsi": self.rsi,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EnrichedRecord":
        """
        Rebuild a record from its persisted JSON shape.

        Raises:
            ValueError: If required fields are missing or malformed
        """
        if not isinstance(data, dict):
            raise ValueError("record must be an object")
        try:
            quote = Quote(
                id=str(data["id"]),
                symbol=str(data.get("symbol") or ""),
                name=str(data.get("name") or ""),
                image=data.get("image"),
                price=data.get("price"),
                change24h=data.get("change24h"),
                change7d=data.get("change7d"),
                change30d=data.get("change30d"),
            )
        except KeyError as e:
            raise ValueError(f"record is missing field {e}") from e
        rsi = data.get("rsi")
        return cls(
            quote=quote,
            spark24h=series_from_json(data.get("spark24h", [])),
            spark7d=series_from_json(data.get("spark7d", [])),
            spark30d=series_from_json(data.get("spark30d", [])),
            rsi=float(rsi) if rsi is not None else None,
        )


@dataclass
class OversoldRecord:
    """An instrument whose 24h RSI sits below the requested threshold."""

    id: str
    symbol: str
    name: str
    price: float | None
    rsi: float
    change24h: float | None
    sparkline: Series = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "name": self.name,
            "price": self.price,
            "rsi": self.rsi,
            "change24h": self.change24h,
            "sparkline": series_to_json(self.sparkline),
        }


@dataclass
class Snapshot:
    """Last known good dashboard result persisted on disk."""

    last_update: str = ""
    records: list[EnrichedRecord] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.records

    def select(self, ids: list[str]) -> list[EnrichedRecord]:
        """Records whose id was requested, in snapshot order."""
        wanted = set(ids)
        return [record for record in self.records if record.id in wanted]

    def to_dict(self) -> dict[str, Any]:
        return {
            "lastUpdate": self.last_update,
            "data": [record.to_dict() for record in self.records],
        }
