"""Tests for the command line."""

import json
from unittest.mock import patch

import httpx
import pytest
from conftest import make_coin

from cryptodash.alerts import ALERTS_SLOT
from cryptodash.main import build_parser, find_coin, init_sentry, main
from cryptodash.portfolio import PORTFOLIO_SLOT
from cryptodash.session import USER_SLOT


@pytest.fixture(autouse=True)
def cli_env(storage):
    """Point the CLI at in-memory storage and keep Sentry off."""
    with (
        patch("cryptodash.main.SqliteStorage", return_value=storage),
        patch("cryptodash.main.sentry_sdk"),
        patch("cryptodash.main.settings.sentry_dsn", None),
        patch("cryptodash.main.settings.discord_webhook_url", None),
    ):
        yield


class TestFindCoin:
    def test_by_id_then_symbol(self, coins):
        assert find_coin(coins, "bitcoin").id == "bitcoin"
        assert find_coin(coins, "ETH").id == "ethereum"
        assert find_coin(coins, "doge") is None


class TestParser:
    def test_watch_options(self):
        args = build_parser().parse_args(["watch", "--per-page", "50", "--currency", "INR"])
        assert args.per_page == 50
        assert args.currency == "INR"

    def test_watch_rejects_other_page_sizes(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["watch", "--per-page", "25"])


class TestAlertsCommand:
    def test_add_list_remove(self, storage, capsys):
        assert main(["alerts", "add", "bitcoin", "49000"]) == 0
        assert main(["alerts", "add", "ethereum", "2000", "--below"]) == 0

        saved = json.loads(storage.get_item(ALERTS_SLOT))
        assert [(a["coin_id"], a["direction"]) for a in saved] == [
            ("bitcoin", "above"),
            ("ethereum", "below"),
        ]

        capsys.readouterr()
        assert main(["alerts", "list"]) == 0
        listing = capsys.readouterr().out
        assert "bitcoin ≥ $49,000.00" in listing
        assert "ethereum ≤ $2,000.00" in listing

        assert main(["alerts", "remove", saved[0]["alert_id"]]) == 0
        assert [a["coin_id"] for a in json.loads(storage.get_item(ALERTS_SLOT))] == ["ethereum"]

    def test_remove_unknown(self, capsys):
        assert main(["alerts", "remove", "nope"]) == 1
        assert "No alert with id nope" in capsys.readouterr().out


class TestPortfolioCommand:
    @patch("cryptodash.main.fetch_page")
    def test_add_and_set(self, mock_fetch_page, storage, coins):
        mock_fetch_page.return_value = coins

        assert main(["portfolio", "add", "btc"]) == 0
        assert main(["portfolio", "set", "bitcoin", "0.5"]) == 0

        [entry] = json.loads(storage.get_item(PORTFOLIO_SLOT))
        assert entry["id"] == "bitcoin"
        assert entry["qty"] == 0.5

    @patch("cryptodash.main.fetch_page")
    def test_add_unknown_coin(self, mock_fetch_page, storage, coins, capsys):
        mock_fetch_page.return_value = coins

        assert main(["portfolio", "add", "dogecoin"]) == 1
        assert storage.get_item(PORTFOLIO_SLOT) is None

    def test_set_requires_entry(self, capsys):
        assert main(["portfolio", "set", "bitcoin", "1"]) == 1
        assert "bitcoin is not in the portfolio" in capsys.readouterr().out

    @patch("cryptodash.main.fetch_rate", return_value=1.0)
    @patch("cryptodash.main.fetch_page")
    def test_show(self, mock_fetch_page, mock_fetch_rate, storage, capsys):
        mock_fetch_page.return_value = [make_coin("bitcoin", 60000.0)]
        main(["portfolio", "add", "bitcoin"])
        main(["portfolio", "set", "bitcoin", "2"])
        capsys.readouterr()

        assert main(["portfolio", "show"]) == 0

        out = capsys.readouterr().out
        assert "bitcoin" in out
        assert "$120,000.00" in out


class TestSessionCommands:
    def test_watch_requires_login(self):
        assert main(["watch"]) == 1

    def test_logout(self, storage):
        storage.set_item(USER_SLOT, json.dumps({"username": "satoshi"}))

        assert main(["logout"]) == 0
        assert storage.get_item(USER_SLOT) is None

    @patch("cryptodash.main.session.login", return_value=(False, "Invalid credentials"))
    def test_login_failure_exit_code(self, mock_login, capsys):
        assert main(["login", "s@example.com", "bad"]) == 1
        assert "Invalid credentials" in capsys.readouterr().out


class TestInitSentry:
    def test_skipped_without_dsn(self):
        with patch("cryptodash.main.sentry_sdk") as mock_sentry:
            init_sentry()
        mock_sentry.init.assert_not_called()

    def test_initialized_with_dsn(self):
        with (
            patch("cryptodash.main.sentry_sdk") as mock_sentry,
            patch("cryptodash.main.settings.sentry_dsn", "https://key@sentry.example/1"),
        ):
            init_sentry()

        mock_sentry.init.assert_called_once()
        assert mock_sentry.init.call_args.kwargs["dsn"] == "https://key@sentry.example/1"


class TestBackendDown:
    def test_login_reports_unreachable_backend(self, capsys):
        def refused(request):
            raise httpx.ConnectError("Connection refused", request=request)

        real_client = httpx.Client
        with patch(
            "cryptodash.main.httpx.Client",
            side_effect=lambda **kwargs: real_client(
                transport=httpx.MockTransport(refused), **kwargs
            ),
        ):
            assert main(["login", "s@example.com", "pw"]) == 1

        assert "Could not reach the auth backend" in capsys.readouterr().out
