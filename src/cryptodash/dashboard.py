import asyncio
import logging
from collections.abc import Callable
from datetime import timezone

import httpx
import structlog

from cryptodash.alerts import AlertStore
from cryptodash.config import Settings
from cryptodash.currency import fetch_exchange_rate, format_currency
from cryptodash.errors import NotLoggedInError
from cryptodash.market import CoinGeckoClient, MarketPoller
from cryptodash.models import AlertEntry, DerivedView, MarketState
from cryptodash.notification import Notifier
from cryptodash.portfolio import PortfolioStore
from cryptodash.session import get_user
from cryptodash.storage import Storage
from cryptodash.view import compose, row_class, sparkline

logging.basicConfig(level=logging.INFO)
logger = structlog.get_logger()


def _percent(value: float | None) -> str:
    return f"{value:+.2f}%" if value else "0.00%"


def render_view(
    view: DerivedView,
    alerts: list[AlertEntry],
    currency: str = "USD",
    rate: float = 1.0,
    page: int = 1,
    per_page: int = 10,
    state: MarketState | None = None,
) -> str:
    """
    🎨 Lay the derived view out as plain text.

    Args:
        view: Output of ``compose`` for the current tick
        alerts: Saved alerts, listed under the coin table
        currency: Display currency
        rate: USD to ``currency`` rate
        page: Current market page, used for the rank column
        per_page: Current page size, used for the rank column
        state: The tick the view was built from, for the timestamp and for
            naming alert coins

    Returns:
        The dashboard as a multi-line string
    """

    def money(amount: float | None) -> str:
        return format_currency(amount, currency, rate)

    lines = []
    updated = ""
    if state is not None and state.fetched_at is not None:
        updated = f"  updated {state.fetched_at.astimezone(timezone.utc):%H:%M:%S} UTC"
    lines.append(f"Crypto Dashboard ({currency}){updated}")

    g = view.global_snapshot
    if g is not None:
        dominance = f"{g.btc_dominance:.2f}%" if g.btc_dominance is not None else "-"
        lines.append(
            f"Total Market Cap: {money(g.total_market_cap_usd)} | "
            f"24h Volume: {money(g.total_volume_usd)} | "
            f"BTC Dominance: {dominance} | "
            f"Active Cryptos: {g.active_cryptocurrencies if g.active_cryptocurrencies is not None else '-'}"
        )
    else:
        lines.append("Total Market Cap: - | 24h Volume: - | BTC Dominance: - | Active Cryptos: -")

    lines.append("")
    lines.append(f"{'#':>4}  {'Coin':<28}{'Price':>18}{'24h':>10}  {'Market Cap':>22}  Chart")
    for idx, coin in enumerate(view.coins):
        arrow = "▲" if row_class(coin) == "up" else "▼"
        label = f"{coin.name} ({coin.symbol.upper()})"
        lines.append(
            f"{idx + 1 + (page - 1) * per_page:>4}  {label:<28}"
            f"{money(coin.current_price):>18}"
            f"{arrow}{_percent(coin.price_change_percentage_24h):>9}  "
            f"{money(coin.market_cap):>22}  {sparkline(coin.sparkline)}"
        )
    if not view.coins:
        lines.append("      no coins match")

    lines.append("")
    lines.append("Price Alerts")
    if not alerts:
        lines.append("  No alerts set")
    for alert in alerts:
        coin = state.find(alert.coin_id) if state is not None else None
        sign = "≥" if alert.direction == "above" else "≤"
        lines.append(
            f"  [{alert.alert_id[:8]}] {coin.name if coin else alert.coin_id} "
            f"{sign} {money(alert.target)}"
        )

    lines.append("")
    lines.append("Your Portfolio")
    if not view.portfolio.rows:
        lines.append("  Portfolio empty: add coins with `cryptodash portfolio add COIN`")
    for row in view.portfolio.rows:
        entry = row.entry
        label = f"{entry.name} ({entry.symbol.upper()})"
        lines.append(
            f"  {label:<28}{entry.qty:>14g}  {money(row.price):>18}  {money(row.total):>20}"
        )
    lines.append(f"  {'Total Value':<28}{money(view.portfolio.total):>56}")
    return "\n".join(lines)


class Dashboard:
    """
    Wires the poller to the stores and renders every tick.

    The exchange rate is looked up once in ``run``; each successful tick
    recomposes the view, fires alert notifications and prints the result.
    """

    def __init__(
        self,
        settings: Settings,
        storage: Storage,
        notifier: Notifier,
        http: httpx.AsyncClient,
        search: str = "",
        out: Callable[[str], None] = print,
    ) -> None:
        self.settings = settings
        self.storage = storage
        self.currency = settings.currency.upper()
        self.search = search
        self.out = out
        self.rate = 1.0
        self.view: DerivedView | None = None

        self.http = http
        self.portfolio = PortfolioStore(storage)
        self.alerts = AlertStore(storage, notifier)
        self.poller = MarketPoller(
            CoinGeckoClient(http, settings.coingecko_base_url),
            interval=settings.poll_interval,
            per_page=settings.per_page,
            page=settings.page,
            on_tick=self.on_tick,
        )

    async def load_rate(self) -> float:
        self.rate = await fetch_exchange_rate(
            self.http,
            self.currency,
            self.settings.exchange_rate_url,
            self.settings.fallback_exchange_rate,
        )
        return self.rate

    async def on_tick(self, state: MarketState) -> None:
        self.view = compose(state, self.portfolio.entries, self.alerts.alerts, self.search)
        await self.alerts.notify(self.view.triggers, self.currency, self.rate)
        self.out(
            render_view(
                self.view,
                self.alerts.alerts,
                currency=self.currency,
                rate=self.rate,
                page=self.poller.page,
                per_page=self.poller.per_page,
                state=state,
            )
        )

    async def run(self) -> None:
        """Poll until cancelled. Requires a logged-in user."""
        user = get_user(self.storage)
        if user is None:
            raise NotLoggedInError()

        logger.info("Starting dashboard", user=user["username"], currency=self.currency)
        await self.load_rate()
        self.poller.start()
        try:
            await asyncio.Event().wait()
        finally:
            self.poller.stop()
