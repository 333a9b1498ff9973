"""Pydantic schemas validating CoinGecko payloads at the client boundary."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from cryptodash.models.market_data import Quote, SeriesPoint


class MarketRow(BaseModel):
    """One row of /coins/markets."""

    model_config = ConfigDict(extra="ignore")

    id: str
    symbol: str = ""
    name: str = ""
    image: Optional[str] = None
    current_price: Optional[float] = None
    price_change_percentage_24h_in_currency: Optional[float] = None
    price_change_percentage_7d_in_currency: Optional[float] = None
    price_change_percentage_30d_in_currency: Optional[float] = None

    def to_quote(self) -> Quote:
        return Quote(
            id=self.id,
            symbol=self.symbol.upper(),
            name=self.name,
            image=self.image,
            price=self.current_price,
            change24h=self.price_change_percentage_24h_in_currency,
            change7d=self.price_change_percentage_7d_in_currency,
            change30d=self.price_change_percentage_30d_in_currency,
        )


class MarketChart(BaseModel):
    """Payload of /coins/{id}/market_chart."""

    model_config = ConfigDict(extra="allow")

    prices: list[tuple[float, float]] = Field(default_factory=list)
    market_caps: list[Any] = Field(default_factory=list)
    total_volumes: list[Any] = Field(default_factory=list)

    def price_points(self) -> list[SeriesPoint]:
        """Price samples sorted ascending by timestamp."""
        points = [SeriesPoint(timestamp=ts, value=value) for ts, value in self.prices]
        return sorted(points, key=lambda point: point.timestamp)

