"""User portfolio kept in local storage.

Entries are held as an ordered list and the whole list is written back on
every change. Quantities are never validated for sign; input that is not a
number becomes NaN and shows up as an invalid total rather than a silent zero.
"""

import math
from decimal import Decimal

from cryptodash.logging import logger
from cryptodash.models import CoinSnapshot, PortfolioEntry
from cryptodash.storage import Storage, load_list, save_list

PORTFOLIO_SLOT = "crypto_portfolio_v2"


def coerce_quantity(value: object) -> float:
    """
    Turn user input into a quantity.

    Numbers pass through, None and blank strings mean 0, numeric strings are
    parsed and everything else is NaN.
    """
    if value is None:
        return 0.0
    if isinstance(value, (bool, int, float, Decimal)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            return float(text)
        except ValueError:
            return math.nan
    return math.nan


class PortfolioStore:
    def __init__(self, storage: Storage) -> None:
        self.storage = storage
        self._entries: list[PortfolioEntry] = load_list(
            storage, PORTFOLIO_SLOT, PortfolioEntry
        )
        logger.debug("Loaded portfolio entries={count}", count=len(self._entries))

    @property
    def entries(self) -> list[PortfolioEntry]:
        return [entry.model_copy() for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, coin_id: object) -> bool:
        return any(entry.id == coin_id for entry in self._entries)

    def _save(self) -> None:
        save_list(self.storage, PORTFOLIO_SLOT, self._entries)

    def add(self, coin: CoinSnapshot) -> bool:
        """Add ``coin`` with zero quantity. Returns False if already held."""
        if coin.id in self:
            return False

        self._entries.append(
            PortfolioEntry(
                id=coin.id,
                symbol=coin.symbol,
                name=coin.name,
                image=coin.image,
                qty=0.0,
                price_usd=coin.current_price or 0.0,
            )
        )
        self._save()
        logger.info("Added to portfolio coin={coin}", coin=coin.id)
        return True

    def remove(self, coin_id: str) -> bool:
        before = len(self._entries)
        self._entries = [entry for entry in self._entries if entry.id != coin_id]
        self._save()
        removed = len(self._entries) != before
        if removed:
            logger.info("Removed from portfolio coin={coin}", coin=coin_id)
        return removed

    def set_quantity(self, coin_id: str, value: object) -> float:
        """Set the held quantity for ``coin_id`` and return the coerced value."""
        qty = coerce_quantity(value)
        self._entries = [
            entry.model_copy(update={"qty": qty}) if entry.id == coin_id else entry
            for entry in self._entries
        ]
        self._save()
        if math.isnan(qty):
            logger.warning(
                "Quantity is not a number coin={coin} value={value}",
                coin=coin_id,
                value=repr(value),
            )
        return qty
