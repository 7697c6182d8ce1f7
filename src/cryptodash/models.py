"""Data models for cryptodash."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

Direction = Literal["above", "below"]


class CoinSnapshot(BaseModel):
    """
    📊 One row of the ranked CoinGecko market list.

    Built straight from the ``/coins/markets`` payload. CoinGecko nests the
    7-day price trail under ``sparkline_in_7d.price``; it is flattened into
    ``sparkline`` here. Unknown API fields are ignored.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(..., description="CoinGecko coin identifier (e.g., 'bitcoin')")
    name: str = Field(..., description="Display name (e.g., 'Bitcoin')")
    symbol: str = Field(..., description="Ticker symbol, lowercase as served")
    current_price: float | None = Field(None, description="Price in USD")
    price_change_percentage_24h: float | None = Field(
        None, description="24h percent change (None when CoinGecko has no data)"
    )
    market_cap: float | None = Field(None, description="Market capitalization in USD")
    image: str = Field("", description="URL to the coin logo")
    sparkline: tuple[float, ...] = Field(
        (), description="7-day price trail, oldest first"
    )

    @model_validator(mode="before")
    @classmethod
    def _flatten_sparkline(cls, data: Any) -> Any:
        if isinstance(data, dict) and "sparkline" not in data:
            trail = data.get("sparkline_in_7d") or {}
            if not isinstance(trail, dict):
                raise ValueError("sparkline_in_7d must be an object")
            points = trail.get("price") or []
            if not isinstance(points, list):
                raise ValueError("sparkline_in_7d.price must be a list")
            data = {**data, "sparkline": [p for p in points if p is not None]}
        return data


def _section(payload: dict[str, Any], key: str) -> dict[str, Any]:
    value = payload.get(key) or {}
    if not isinstance(value, dict):
        raise ValueError(f"{key} must be an object")
    return value


class GlobalSnapshot(BaseModel):
    """Market-wide totals from CoinGecko ``/global``."""

    model_config = ConfigDict(frozen=True)

    total_market_cap_usd: float | None = None
    total_volume_usd: float | None = None
    btc_dominance: float | None = None
    eth_dominance: float | None = None
    active_cryptocurrencies: int | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "GlobalSnapshot":
        """Build a snapshot from the ``/global`` response body.

        Raises:
            ValueError: a nested section is not an object
        """
        data = _section(payload, "data")
        shares = _section(data, "market_cap_percentage")
        return cls(
            total_market_cap_usd=_section(data, "total_market_cap").get("usd"),
            total_volume_usd=_section(data, "total_volume").get("usd"),
            btc_dominance=shares.get("btc"),
            eth_dominance=shares.get("eth"),
            active_cryptocurrencies=data.get("active_cryptocurrencies"),
        )


class MarketState(BaseModel):
    """Everything one successful poll tick produced, replaced as a whole."""

    model_config = ConfigDict(frozen=True)

    coins: tuple[CoinSnapshot, ...] = ()
    global_snapshot: GlobalSnapshot | None = None
    generation: int = 0
    fetched_at: datetime | None = None

    def find(self, coin_id: str) -> CoinSnapshot | None:
        for coin in self.coins:
            if coin.id == coin_id:
                return coin
        return None


class PortfolioEntry(BaseModel):
    """A held coin. ``price_usd`` is the price seen when the coin was added."""

    id: str
    symbol: str = ""
    name: str = ""
    image: str = ""
    qty: float = 0.0
    price_usd: float = 0.0


class AlertEntry(BaseModel):
    """A price trigger. It stays armed until removed."""

    alert_id: str
    coin_id: str
    target: float
    direction: Direction = "above"
    created_at: int = Field(..., description="Creation time, epoch milliseconds")


class AlertTrigger(BaseModel):
    """An alert whose condition holds against the current snapshot."""

    alert: AlertEntry
    coin: CoinSnapshot
    price: float


class PortfolioRow(BaseModel):
    entry: PortfolioEntry
    price: float
    total: float
    image: str = ""
    live: bool = Field(False, description="Price came from the current snapshot")


class PortfolioValuation(BaseModel):
    rows: list[PortfolioRow] = Field(default_factory=list)
    total: float = 0.0


class DerivedView(BaseModel):
    """What the dashboard renders for one tick, computed from the stores."""

    coins: list[CoinSnapshot] = Field(default_factory=list)
    portfolio: PortfolioValuation = Field(default_factory=PortfolioValuation)
    triggers: list[AlertTrigger] = Field(default_factory=list)
    global_snapshot: GlobalSnapshot | None = None
