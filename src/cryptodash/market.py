"""CoinGecko market polling.

``MarketPoller`` fetches one page of ranked coins plus the global totals on a
fixed interval. A tick either replaces the whole ``MarketState`` or leaves it
alone; there is no retry or backoff. Each tick is numbered and only the newest
tick's response is ever applied.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

import httpx
import sentry_sdk
import structlog

from cryptodash.models import CoinSnapshot, GlobalSnapshot, MarketState

logging.basicConfig(level=logging.INFO)
logger = structlog.get_logger()

PER_PAGE_CHOICES = (10, 50, 100)

TickCallback = Callable[[MarketState], Awaitable[None] | None]


class CoinGeckoClient:
    """Thin async wrapper over the two CoinGecko endpoints the dashboard uses."""

    def __init__(self, http: httpx.AsyncClient, base_url: str) -> None:
        self.http = http
        self.base_url = base_url.rstrip("/")

    async def fetch_markets(self, per_page: int = 10, page: int = 1) -> list[CoinSnapshot]:
        logger.debug("Fetching markets", per_page=per_page, page=page)
        response = await self.http.get(
            f"{self.base_url}/coins/markets",
            params={
                "vs_currency": "usd",
                "order": "market_cap_desc",
                "per_page": per_page,
                "page": page,
                "sparkline": "true",
                "price_change_percentage": "24h",
            },
        )
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, list):
            raise ValueError("markets response is not a list")
        return [CoinSnapshot.model_validate(item) for item in payload]

    async def fetch_global(self) -> GlobalSnapshot:
        logger.debug("Fetching global market data")
        response = await self.http.get(f"{self.base_url}/global")
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError("global response is not an object")
        return GlobalSnapshot.from_api(payload)


class MarketPoller:
    """
    Recurring fetch-and-replace loop for market data.

    Args:
        client: CoinGecko client used for both requests
        interval: Seconds to wait between ticks
        per_page: Page size for the ranked coin list
        page: Page number for the ranked coin list
        on_tick: Called (and awaited if it returns an awaitable) with the new
            state after every successful tick
    """

    def __init__(
        self,
        client: CoinGeckoClient,
        interval: float = 10.0,
        per_page: int = 10,
        page: int = 1,
        on_tick: TickCallback | None = None,
    ) -> None:
        self.client = client
        self.interval = interval
        self.per_page = per_page
        self.page = page
        self.on_tick = on_tick
        self.state = MarketState()
        self._generation = 0
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None

    def start(self) -> None:
        """Arm the interval on the running loop: one tick now, then every ``interval``."""
        if self._task is not None:
            logger.warning("Market poller already running")
            return
        self._task = asyncio.create_task(self._run())
        logger.info(
            "Market poller started",
            interval=self.interval,
            per_page=self.per_page,
            page=self.page,
        )

    def stop(self) -> bool:
        """Cancel the interval. Returns False if it was not running."""
        if self._task is None:
            return False
        self._task.cancel()
        self._task = None
        logger.info("Market poller stopped")
        return True

    def set_params(self, per_page: int | None = None, page: int | None = None) -> None:
        """Change the page window and re-arm the interval if it is running."""
        if per_page is not None:
            self.per_page = per_page
        if page is not None:
            self.page = page
        if self.stop():
            self.start()

    async def _run(self) -> None:
        while True:
            try:
                await self.refresh()
            except Exception as e:
                logger.error("Market poll crashed", error_type=type(e).__name__, error=str(e))
                sentry_sdk.capture_exception(e)
            await asyncio.sleep(self.interval)

    async def refresh(self) -> bool:
        """
        Run one poll tick.

        Returns:
            True if the state was replaced, False if the tick failed or was
            superseded by a newer one before its responses arrived. An error
            raised by ``on_tick`` is logged and does not change the result.
        """
        self._generation += 1
        generation = self._generation
        sentry_sdk.add_breadcrumb(
            category="market",
            message="Polling market data",
            level="info",
            data={"generation": generation, "per_page": self.per_page, "page": self.page},
        )

        try:
            coins, global_snapshot = await asyncio.gather(
                self.client.fetch_markets(self.per_page, self.page),
                self.client.fetch_global(),
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Market poll failed", generation=generation, error=str(e))
            sentry_sdk.capture_exception(e)
            return False

        if generation != self._generation:
            logger.info(
                "Discarding stale market response",
                generation=generation,
                latest=self._generation,
            )
            return False

        self.state = MarketState(
            coins=tuple(coins),
            global_snapshot=global_snapshot,
            generation=generation,
            fetched_at=datetime.now(timezone.utc),
        )
        logger.debug("Market state replaced", generation=generation, coins=len(coins))

        if self.on_tick is not None:
            try:
                result = self.on_tick(self.state)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error("Tick handler failed", generation=generation, error=str(e))
                sentry_sdk.capture_exception(e)

        return True
