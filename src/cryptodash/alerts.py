"""Client-side price alerts.

Alerts are stored in local storage and checked against every successful
market poll. An alert has no "fired" state: while its condition holds it
notifies again on each tick until the user removes it.
"""

import asyncio
import time
import uuid
from collections.abc import Callable, Iterable

import sentry_sdk

from cryptodash.currency import format_currency
from cryptodash.logging import logger
from cryptodash.models import AlertEntry, AlertTrigger, CoinSnapshot, Direction
from cryptodash.notification import Notifier
from cryptodash.storage import Storage, load_list, save_list

ALERTS_SLOT = "crypto_alerts_v2"


def is_triggered(alert: AlertEntry, price: float) -> bool:
    """Both bounds are inclusive: price == target fires either direction."""
    if alert.direction == "above":
        return price >= alert.target
    return price <= alert.target


def evaluate_alerts(
    alerts: Iterable[AlertEntry], coins: Iterable[CoinSnapshot]
) -> list[AlertTrigger]:
    """Return the alerts whose condition holds for the given snapshot.

    Alerts for coins missing from ``coins`` (or without a price) are skipped.
    """
    by_id = {coin.id: coin for coin in coins}
    triggers = []
    for alert in alerts:
        coin = by_id.get(alert.coin_id)
        if coin is None or coin.current_price is None:
            continue
        if is_triggered(alert, coin.current_price):
            triggers.append(AlertTrigger(alert=alert, coin=coin, price=coin.current_price))
    return triggers


class AlertStore:
    def __init__(
        self,
        storage: Storage,
        notifier: Notifier,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.storage = storage
        self.notifier = notifier
        self.clock = clock
        self._alerts: list[AlertEntry] = load_list(storage, ALERTS_SLOT, AlertEntry)

        # Saved alerts mean permission was asked for when they were created
        if self._alerts and self.notifier.permission == "default":
            self.notifier.request_permission()

    @property
    def alerts(self) -> list[AlertEntry]:
        return list(self._alerts)

    def __len__(self) -> int:
        return len(self._alerts)

    def _save(self) -> None:
        save_list(self.storage, ALERTS_SLOT, self._alerts)

    def add(self, coin_id: str, target: float, direction: Direction = "above") -> AlertEntry:
        alert = AlertEntry(
            alert_id=uuid.uuid4().hex,
            coin_id=coin_id,
            target=target,
            direction=direction,
            created_at=int(self.clock() * 1000),
        )
        self._alerts.append(alert)
        self._save()
        logger.info(
            "Alert saved coin={coin} direction={direction} target={target}",
            coin=coin_id,
            direction=direction,
            target=alert.target,
        )

        if self.notifier.permission == "default":
            self.notifier.request_permission()
        return alert

    def remove(self, alert_id: str) -> bool:
        before = len(self._alerts)
        self._alerts = [a for a in self._alerts if a.alert_id != alert_id]
        if len(self._alerts) == before:
            logger.info("No alert with id={alert_id}", alert_id=alert_id)
            return False
        self._save()
        return True

    async def notify(
        self,
        triggers: list[AlertTrigger],
        currency: str = "USD",
        rate: float = 1.0,
    ) -> list[AlertTrigger]:
        """
        Send one notification per trigger if permission is granted.

        Notifier delivery is blocking I/O, so each send runs in a worker
        thread and the event loop keeps polling meanwhile.

        Args:
            triggers: Output of ``evaluate_alerts`` for the current tick
            currency: Display currency for the notification text
            rate: USD to ``currency`` rate

        Returns:
            The triggers, whether or not a notification went out
        """
        if not triggers:
            return triggers

        if self.notifier.permission != "granted":
            logger.debug(
                "Alerts triggered but notifications not permitted count={count}",
                count=len(triggers),
            )
            return triggers

        for trigger in triggers:
            title = f"{trigger.coin.name} price alert"
            body = (
                f"{trigger.coin.symbol.upper()} is "
                f"{format_currency(trigger.price, currency, rate)} "
                f"(target {format_currency(trigger.alert.target, currency, rate)})"
            )
            sentry_sdk.add_breadcrumb(
                category="alert",
                message="Price alert triggered",
                level="info",
                data={"coin": trigger.coin.id, "price": trigger.price},
            )
            await asyncio.to_thread(self.notifier.send, title, body, trigger.coin.image or None)

        return triggers
