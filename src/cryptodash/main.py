"""
cryptodash command line.

Usage:
    cryptodash signup USERNAME EMAIL PASSWORD
    cryptodash login EMAIL PASSWORD
    cryptodash watch [--search eth] [--per-page 50] [--page 2] [--currency INR]
    cryptodash portfolio add bitcoin
    cryptodash portfolio set bitcoin 0.5
    cryptodash alerts add bitcoin 49000 [--below]
    cryptodash alerts remove ALERT_ID
    cryptodash serve
"""

import argparse
import asyncio
import sys

import httpx
import sentry_sdk
import uvicorn

from cryptodash import session
from cryptodash.alerts import AlertStore
from cryptodash.config import Settings, settings
from cryptodash.currency import (
    SUPPORTED_CURRENCIES,
    fetch_exchange_rate,
    format_currency,
)
from cryptodash.dashboard import Dashboard
from cryptodash.errors import NotLoggedInError
from cryptodash.logging import logger
from cryptodash.market import PER_PAGE_CHOICES, CoinGeckoClient
from cryptodash.models import CoinSnapshot
from cryptodash.notification import build_notifier
from cryptodash.portfolio import PortfolioStore
from cryptodash.storage import SqliteStorage, Storage
from cryptodash.version import get_version_info
from cryptodash.view import value_portfolio


def init_sentry() -> None:
    if not settings.sentry_dsn:
        return
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.sentry_environment,
        traces_sample_rate=settings.sentry_traces_sample_rate,
        integrations=[],
        attach_stacktrace=True,
    )
    logger.info(
        "Sentry initialized environment={environment} traces_sample_rate={traces_sample_rate}",
        environment=settings.sentry_environment,
        traces_sample_rate=settings.sentry_traces_sample_rate,
    )


def fetch_page(config: Settings) -> list[CoinSnapshot]:
    """Fetch the configured market page once, outside the poll loop."""

    async def _fetch() -> list[CoinSnapshot]:
        async with httpx.AsyncClient(timeout=config.http_timeout) as http:
            client = CoinGeckoClient(http, config.coingecko_base_url)
            return await client.fetch_markets(config.per_page, config.page)

    return asyncio.run(_fetch())


def fetch_rate(config: Settings) -> float:
    async def _fetch() -> float:
        async with httpx.AsyncClient(timeout=config.http_timeout) as http:
            return await fetch_exchange_rate(
                http,
                config.currency,
                config.exchange_rate_url,
                config.fallback_exchange_rate,
            )

    return asyncio.run(_fetch())


def find_coin(coins: list[CoinSnapshot], name: str) -> CoinSnapshot | None:
    """Match a coin by id first, then by symbol."""
    needle = name.lower()
    for coin in coins:
        if coin.id == needle:
            return coin
    for coin in coins:
        if coin.symbol.lower() == needle:
            return coin
    return None


def cmd_watch(args: argparse.Namespace, config: Settings, storage: Storage) -> int:
    async def _watch() -> None:
        async with httpx.AsyncClient(timeout=config.http_timeout) as http:
            dashboard = Dashboard(
                config, storage, build_notifier(config), http, search=args.search
            )
            await dashboard.run()

    try:
        asyncio.run(_watch())
    except NotLoggedInError as e:
        logger.error(e.message)
        return 1
    except KeyboardInterrupt:  # pragma: no cover
        logger.info("Stopping dashboard")
    return 0


def cmd_portfolio(args: argparse.Namespace, config: Settings, storage: Storage) -> int:
    store = PortfolioStore(storage)

    if args.action == "remove":
        if not store.remove(args.coin):
            print(f"{args.coin} is not in the portfolio")
        return 0

    if args.action == "set":
        if args.coin not in store:
            print(f"{args.coin} is not in the portfolio")
            return 1
        store.set_quantity(args.coin, args.qty)
        return 0

    try:
        coins = fetch_page(config)
    except (httpx.HTTPError, ValueError) as e:
        logger.error("Could not fetch market data: {error}", error=str(e))
        if args.action == "add":
            return 1
        coins = []

    if args.action == "add":
        coin = find_coin(coins, args.coin)
        if coin is None:
            print(f"{args.coin} is not in the current top {config.per_page} (page {config.page})")
            return 1
        if not store.add(coin):
            print(f"{coin.name} is already in the portfolio")
        return 0

    valuation = value_portfolio(store.entries, coins)
    currency = config.currency.upper()
    rate = fetch_rate(config)
    if not valuation.rows:
        print("Portfolio empty")
    for row in valuation.rows:
        print(
            f"{row.entry.id:<20}{row.entry.qty:>14g}  "
            f"{format_currency(row.price, currency, rate):>18}  "
            f"{format_currency(row.total, currency, rate):>20}"
        )
    print(f"{'Total Value':<20}{format_currency(valuation.total, currency, rate):>56}")
    return 0


def cmd_alerts(args: argparse.Namespace, config: Settings, storage: Storage) -> int:
    store = AlertStore(storage, build_notifier(config))

    if args.action == "add":
        alert = store.add(args.coin, args.target, "below" if args.below else "above")
        print(f"Alert saved ({alert.alert_id})")
    elif args.action == "remove":
        if not store.remove(args.alert_id):
            print(f"No alert with id {args.alert_id}")
            return 1
    else:
        if not store.alerts:
            print("No alerts set")
        for alert in store.alerts:
            sign = "≥" if alert.direction == "above" else "≤"
            print(f"{alert.alert_id}  {alert.coin_id} {sign} {format_currency(alert.target)}")
    return 0


def cmd_signup(args: argparse.Namespace, config: Settings, storage: Storage) -> int:
    with httpx.Client(base_url=config.api_base_url, timeout=config.http_timeout) as http:
        ok, message = session.signup(http, args.username, args.email, args.password)
    print(message)
    return 0 if ok else 1


def cmd_login(args: argparse.Namespace, config: Settings, storage: Storage) -> int:
    with httpx.Client(base_url=config.api_base_url, timeout=config.http_timeout) as http:
        ok, message = session.login(http, storage, args.email, args.password)
    print(message)
    return 0 if ok else 1


def cmd_logout(args: argparse.Namespace, config: Settings, storage: Storage) -> int:
    session.logout(storage)
    return 0


def cmd_serve(args: argparse.Namespace, config: Settings, storage: Storage) -> int:
    uvicorn.run("cryptodash.server:app", host=config.api_host, port=config.api_port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cryptodash", description="Crypto price dashboard")
    sub = parser.add_subparsers(dest="command", required=True)

    watch = sub.add_parser("watch", help="Poll prices and show the dashboard")
    watch.add_argument("--search", default="", help="Filter coins by name or symbol")
    watch.add_argument("--per-page", type=int, choices=PER_PAGE_CHOICES)
    watch.add_argument("--page", type=int)
    watch.add_argument("--currency", choices=sorted(SUPPORTED_CURRENCIES))
    watch.set_defaults(func=cmd_watch)

    portfolio = sub.add_parser("portfolio", help="Show or edit the portfolio")
    p_sub = portfolio.add_subparsers(dest="action", required=True)
    p_sub.add_parser("show")
    p_sub.add_parser("add").add_argument("coin")
    p_sub.add_parser("remove").add_argument("coin")
    p_set = p_sub.add_parser("set")
    p_set.add_argument("coin")
    p_set.add_argument("qty")
    portfolio.set_defaults(func=cmd_portfolio)

    alerts = sub.add_parser("alerts", help="Manage price alerts")
    a_sub = alerts.add_subparsers(dest="action", required=True)
    a_sub.add_parser("list")
    a_add = a_sub.add_parser("add")
    a_add.add_argument("coin", help="CoinGecko id, e.g. bitcoin")
    a_add.add_argument("target", type=float, help="Target price in USD")
    a_add.add_argument("--below", action="store_true", help="Fire when price drops to target")
    a_sub.add_parser("remove").add_argument("alert_id")
    alerts.set_defaults(func=cmd_alerts)

    s_up = sub.add_parser("signup", help="Create an account")
    s_up.add_argument("username")
    s_up.add_argument("email")
    s_up.add_argument("password")
    s_up.set_defaults(func=cmd_signup)

    s_in = sub.add_parser("login", help="Log in and remember the user")
    s_in.add_argument("email")
    s_in.add_argument("password")
    s_in.set_defaults(func=cmd_login)

    sub.add_parser("logout", help="Forget the logged-in user").set_defaults(func=cmd_logout)
    sub.add_parser("serve", help="Run the auth backend").set_defaults(func=cmd_serve)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    init_sentry()
    logger.info("Starting cryptodash version={version}", version=get_version_info())

    overrides = {
        key: value
        for key, value in {
            "per_page": getattr(args, "per_page", None),
            "page": getattr(args, "page", None),
            "currency": getattr(args, "currency", None),
        }.items()
        if value is not None
    }
    config = settings.model_copy(update=overrides)
    return args.func(args, config, SqliteStorage())


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
