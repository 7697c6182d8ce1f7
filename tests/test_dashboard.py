"""Tests for dashboard rendering and tick wiring."""

import json
from datetime import datetime, timezone

import httpx
import pytest
from conftest import make_coin

from cryptodash.config import Settings
from cryptodash.dashboard import Dashboard, render_view
from cryptodash.errors import NotLoggedInError
from cryptodash.models import AlertEntry, GlobalSnapshot, MarketState, PortfolioEntry
from cryptodash.session import USER_SLOT
from cryptodash.view import compose


@pytest.fixture
def state(coins):
    return MarketState(
        coins=tuple(coins),
        global_snapshot=GlobalSnapshot(
            total_market_cap_usd=2.5e12,
            total_volume_usd=9.0e10,
            btc_dominance=52.3,
            active_cryptocurrencies=10500,
        ),
        generation=1,
        fetched_at=datetime(2024, 1, 1, 12, 30, 5, tzinfo=timezone.utc),
    )


@pytest.fixture
def http():
    transport = httpx.MockTransport(lambda request: httpx.Response(500))
    return httpx.AsyncClient(transport=transport)


class TestRenderView:
    def test_header_and_global_line(self, state):
        text = render_view(compose(state, [], []), [], state=state)

        assert "Crypto Dashboard (USD)  updated 12:30:05 UTC" in text
        assert "Total Market Cap: $2,500,000,000,000.00" in text
        assert "BTC Dominance: 52.30%" in text
        assert "Active Cryptos: 10500" in text

    def test_missing_global_snapshot(self):
        text = render_view(compose(MarketState(), [], []), [])
        assert "Total Market Cap: - | 24h Volume: - | BTC Dominance: - | Active Cryptos: -" in text
        assert "no coins match" in text

    def test_coin_rows_ranked_by_page(self, state):
        text = render_view(compose(state, [], []), [], page=2, per_page=50, state=state)

        assert "  51  Bitcoin (BTC)" in text
        assert "  52  Ethereum (ETH)" in text
        assert "$50,000.00" in text
        assert "▲   +1.50%" in text

    def test_alerts_listed(self, state):
        alerts = [
            AlertEntry(alert_id="abcdef1234", coin_id="bitcoin", target=49000, created_at=0),
            AlertEntry(
                alert_id="0123456789", coin_id="dogecoin", target=1, direction="below", created_at=0
            ),
        ]
        text = render_view(compose(state, [], alerts), alerts, state=state)

        assert "[abcdef12] Bitcoin ≥ $49,000.00" in text
        assert "[01234567] dogecoin ≤ $1.00" in text

    def test_no_alerts_and_empty_portfolio(self, state):
        text = render_view(compose(state, [], []), [], state=state)

        assert "No alerts set" in text
        assert "Portfolio empty" in text
        assert "Total Value" in text

    def test_portfolio_in_inr(self, state):
        portfolio = [
            PortfolioEntry(id="bitcoin", symbol="btc", name="Bitcoin", qty=1.0, price_usd=1.0)
        ]
        text = render_view(
            compose(state, portfolio, []), [], currency="INR", rate=80.0, state=state
        )

        assert "Crypto Dashboard (INR)" in text
        assert "Bitcoin (BTC)" in text
        assert "₹40,00,000.00" in text

    def test_nan_total_shows_placeholder(self, state):
        portfolio = [PortfolioEntry(id="bitcoin", name="Bitcoin", qty=float("nan"))]
        text = render_view(compose(state, portfolio, []), [], state=state)

        total_line = [line for line in text.splitlines() if "Total Value" in line][0]
        assert total_line.rstrip().endswith("-")


class TestDashboard:
    @pytest.mark.asyncio
    async def test_on_tick_renders_and_notifies(self, storage, notifier, http, state):
        out = []
        dashboard = Dashboard(Settings(_env_file=None), storage, notifier, http, out=out.append)
        dashboard.alerts.add("bitcoin", 49000)
        dashboard.portfolio.add(make_coin("ethereum", 3000.0))
        dashboard.portfolio.set_quantity("ethereum", 2)

        await dashboard.on_tick(state)

        assert len(out) == 1
        assert "Bitcoin (BTC)" in out[0]
        assert "$6,000.00" in out[0]
        assert notifier.sent[0][0] == "Bitcoin price alert"
        assert dashboard.view.portfolio.total == 6000.0

    @pytest.mark.asyncio
    async def test_search_applied(self, storage, notifier, http, state):
        out = []
        dashboard = Dashboard(
            Settings(_env_file=None), storage, notifier, http, search="eth", out=out.append
        )
        await dashboard.on_tick(state)

        assert "Ethereum (ETH)" in out[0]
        assert "Bitcoin (BTC)" not in out[0]

    @pytest.mark.asyncio
    async def test_run_requires_login(self, storage, notifier, http):
        dashboard = Dashboard(Settings(_env_file=None), storage, notifier, http)

        with pytest.raises(NotLoggedInError):
            await dashboard.run()
        assert dashboard.poller.running is False

    @pytest.mark.asyncio
    async def test_load_rate_falls_back(self, storage, notifier, http):
        storage.set_item(USER_SLOT, json.dumps({"username": "satoshi"}))
        config = Settings(_env_file=None, currency="INR", fallback_exchange_rate=82.0)
        dashboard = Dashboard(config, storage, notifier, http)

        assert await dashboard.load_rate() == 82.0
        assert dashboard.rate == 82.0
