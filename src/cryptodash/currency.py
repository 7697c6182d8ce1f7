import logging
import math
from decimal import Decimal

import httpx
import structlog
from babel.numbers import format_currency as babel_format_currency

from cryptodash.errors import UnsupportedCurrencyError

logging.basicConfig(level=logging.INFO)
logger = structlog.get_logger()

PLACEHOLDER = "-"

# Currency code -> locale used for grouping and symbol placement
SUPPORTED_CURRENCIES = {
    "USD": "en_US",
    "INR": "en_IN",
}


def _check_currency(currency: str) -> str:
    code = currency.upper()
    if code not in SUPPORTED_CURRENCIES:
        raise UnsupportedCurrencyError(currency)
    return code


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def convert(amount_usd: float, currency: str, rate: float) -> float:
    """Convert a USD amount into ``currency`` using the cached USD rate."""
    code = _check_currency(currency)
    if code == "USD":
        return float(amount_usd)
    return float(amount_usd) * rate


def format_currency(amount_usd: object, currency: str = "USD", rate: float = 1.0) -> str:
    """
    Format a USD amount for display in ``currency``.

    Args:
        amount_usd: Amount in USD. None, non-numeric, NaN and infinite values
            render as the placeholder instead of raising.
        currency: Target currency code, one of SUPPORTED_CURRENCIES
        rate: USD to ``currency`` exchange rate (ignored for USD)

    Returns:
        Locale formatted string, e.g. "$50,000.00" or "₹41,00,000.00"
    """
    code = _check_currency(currency)
    if not _is_number(amount_usd):
        return PLACEHOLDER

    value = convert(float(amount_usd), code, rate)  # type: ignore[arg-type]
    if not math.isfinite(value):
        return PLACEHOLDER

    return babel_format_currency(value, code, locale=SUPPORTED_CURRENCIES[code])


async def fetch_exchange_rate(
    client: httpx.AsyncClient,
    currency: str,
    url: str,
    fallback: float,
) -> float:
    """
    Look up the USD -> ``currency`` rate once.

    Any failure (network error, error status, missing or non-numeric rate)
    returns ``fallback``. USD never hits the network.
    """
    code = _check_currency(currency)
    if code == "USD":
        return 1.0

    logger.info("Fetching exchange rate", currency=code)
    try:
        response = await client.get(url, params={"base": "USD", "symbols": code})
        response.raise_for_status()
        payload = response.json()
        rates = payload.get("rates") if isinstance(payload, dict) else None
        rate = rates.get(code) if isinstance(rates, dict) else None
        if not _is_number(rate) or not math.isfinite(rate) or rate <= 0:
            raise ValueError(f"no usable {code} rate in response")
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(
            "Exchange rate lookup failed, using fallback",
            currency=code,
            fallback=fallback,
            error=str(e),
        )
        return fallback

    logger.info("Exchange rate fetched", currency=code, rate=rate)
    return float(rate)
