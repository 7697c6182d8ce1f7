"""Tests for currency conversion, formatting and the exchange-rate lookup."""

import math

import httpx
import pytest

from cryptodash.currency import (
    PLACEHOLDER,
    SUPPORTED_CURRENCIES,
    convert,
    fetch_exchange_rate,
    format_currency,
)
from cryptodash.errors import UnsupportedCurrencyError

RATE_URL = "https://rates.example.com/latest"


class TestConvert:
    def test_usd_ignores_rate(self):
        assert convert(100.0, "USD", 82.0) == 100.0

    def test_inr_uses_rate(self):
        assert convert(100.0, "INR", 82.0) == 8200.0

    @pytest.mark.parametrize("currency", sorted(SUPPORTED_CURRENCIES))
    def test_monotonic(self, currency):
        """Larger USD amounts never convert to smaller values."""
        amounts = [-10.0, 0.0, 0.01, 1.0, 999.99, 1e6, 1e12]
        converted = [convert(a, currency, 83.25) for a in amounts]
        assert converted == sorted(converted)

    def test_unsupported_currency(self):
        with pytest.raises(UnsupportedCurrencyError):
            convert(1.0, "EUR", 1.0)


class TestFormatCurrency:
    @pytest.mark.parametrize(
        "amount,expected",
        [
            (50000, "$50,000.00"),
            (0.5, "$0.50"),
            (1234567.891, "$1,234,567.89"),
        ],
    )
    def test_usd(self, amount, expected):
        assert format_currency(amount, "USD") == expected

    def test_inr_lakh_grouping(self):
        """INR uses en_IN grouping after conversion."""
        assert format_currency(10000, "INR", rate=82.0) == "₹8,20,000.00"

    def test_currency_code_case_insensitive(self):
        assert format_currency(1, "usd") == "$1.00"

    @pytest.mark.parametrize("currency", sorted(SUPPORTED_CURRENCIES))
    @pytest.mark.parametrize(
        "value", [None, math.nan, math.inf, -math.inf, "abc", "100", [], True]
    )
    def test_placeholder_for_non_finite(self, currency, value):
        assert format_currency(value, currency, rate=82.0) == PLACEHOLDER

    def test_overflowing_conversion_is_placeholder(self):
        assert format_currency(1e308, "INR", rate=1e10) == PLACEHOLDER


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestFetchExchangeRate:
    @pytest.mark.asyncio
    async def test_success(self):
        seen = {}

        def handler(request):
            seen.update(request.url.params)
            return httpx.Response(200, json={"rates": {"INR": 83.5}})

        async with _client(handler) as http:
            rate = await fetch_exchange_rate(http, "INR", RATE_URL, 82.0)

        assert rate == 83.5
        assert seen == {"base": "USD", "symbols": "INR"}

    @pytest.mark.asyncio
    async def test_usd_needs_no_request(self):
        def handler(request):
            raise AssertionError("no request expected")

        async with _client(handler) as http:
            assert await fetch_exchange_rate(http, "USD", RATE_URL, 82.0) == 1.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(500),
            httpx.Response(200, json={"success": False}),
            httpx.Response(200, json={"rates": {"INR": "lots"}}),
            httpx.Response(200, json=[1, 2]),
            httpx.Response(200, text="<html>"),
        ],
    )
    async def test_bad_response_uses_fallback(self, response):
        async with _client(lambda request: response) as http:
            assert await fetch_exchange_rate(http, "INR", RATE_URL, 82.0) == 82.0

    @pytest.mark.asyncio
    async def test_network_error_uses_fallback(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        async with _client(handler) as http:
            assert await fetch_exchange_rate(http, "INR", RATE_URL, 82.0) == 82.0
