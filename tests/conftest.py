"""Shared pytest fixtures for cryptodash tests."""

import pytest
from loguru import logger

from cryptodash.models import CoinSnapshot
from cryptodash.storage import MemoryStorage


@pytest.fixture(autouse=True)
def disable_loguru():
    """Disable loguru output during tests for cleaner output."""
    logger.disable("cryptodash")
    yield
    logger.enable("cryptodash")


class FakeNotifier:
    """Records notifications instead of sending them."""

    def __init__(self, permission="default", grant=True):
        self.permission = permission
        self.grant = grant
        self.requests = 0
        self.sent = []

    def request_permission(self):
        self.requests += 1
        self.permission = "granted" if self.grant else "denied"
        return self.permission

    def send(self, title, body, image_url=None):
        self.sent.append((title, body, image_url))


def make_coin(coin_id="bitcoin", price=50000.0, **overrides) -> CoinSnapshot:
    names = {"bitcoin": ("Bitcoin", "btc"), "ethereum": ("Ethereum", "eth")}
    name, symbol = names.get(coin_id, (coin_id.title(), coin_id[:3]))
    data = {
        "id": coin_id,
        "name": name,
        "symbol": symbol,
        "current_price": price,
        "price_change_percentage_24h": 1.5,
        "market_cap": price * 1000,
        "image": f"https://example.com/{coin_id}.png",
    }
    data.update(overrides)
    return CoinSnapshot(**data)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def coins():
    return [make_coin("bitcoin", 50000.0), make_coin("ethereum", 3000.0)]
