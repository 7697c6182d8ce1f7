"""Derived dashboard state.

Everything here is a pure function of the market state and the two stores'
contents; nothing is cached between ticks. Money stays in USD until it is
formatted for display.
"""

from collections.abc import Iterable, Sequence
from typing import Literal

from cryptodash.alerts import evaluate_alerts
from cryptodash.models import (
    AlertEntry,
    CoinSnapshot,
    DerivedView,
    MarketState,
    PortfolioEntry,
    PortfolioRow,
    PortfolioValuation,
)

SPARK_BLOCKS = "▁▂▃▄▅▆▇█"


def filter_coins(coins: Iterable[CoinSnapshot], search: str = "") -> list[CoinSnapshot]:
    """Case-insensitive substring match on name or symbol; empty search keeps all."""
    if not search:
        return list(coins)
    query = search.lower()
    return [c for c in coins if query in c.name.lower() or query in c.symbol.lower()]


def row_class(coin: CoinSnapshot) -> Literal["up", "down"]:
    """Zero and missing changes count as "down"."""
    change = coin.price_change_percentage_24h
    return "up" if change is not None and change > 0 else "down"


def value_portfolio(
    entries: Iterable[PortfolioEntry], coins: Iterable[CoinSnapshot]
) -> PortfolioValuation:
    """
    Price every holding and sum the totals.

    The live price comes from ``coins`` when the coin is on the current page,
    otherwise the price cached when the coin was added is used. A NaN
    quantity makes that row's total and the grand total NaN.
    """
    by_id = {coin.id: coin for coin in coins}
    rows = []
    for entry in entries:
        coin = by_id.get(entry.id)
        live = coin is not None and bool(coin.current_price)
        price = coin.current_price if live else (entry.price_usd or 0.0)
        rows.append(
            PortfolioRow(
                entry=entry,
                price=price,
                total=entry.qty * price,
                image=(coin.image if coin else "") or entry.image,
                live=live,
            )
        )
    return PortfolioValuation(rows=rows, total=sum(row.total for row in rows))


def sparkline(points: Sequence[float], width: int = 30) -> str:
    """Render the last ``width`` trail points as unicode bars."""
    data = list(points)[-width:]
    if not data:
        return ""
    low, high = min(data), max(data)
    span = (high - low) or 1
    top = len(SPARK_BLOCKS) - 1
    return "".join(SPARK_BLOCKS[round((v - low) / span * top)] for v in data)


def compose(
    state: MarketState,
    portfolio: Iterable[PortfolioEntry],
    alerts: Iterable[AlertEntry],
    search: str = "",
) -> DerivedView:
    """Combine one market tick with the portfolio and alerts into a view."""
    return DerivedView(
        coins=filter_coins(state.coins, search),
        portfolio=value_portfolio(portfolio, state.coins),
        triggers=evaluate_alerts(alerts, state.coins),
        global_snapshot=state.global_snapshot,
    )
