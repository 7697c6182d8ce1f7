import logging
from typing import Literal, Protocol

import sentry_sdk
import structlog
from discord_webhook import DiscordEmbed, DiscordWebhook

from cryptodash.config import Settings

logging.basicConfig(level=logging.INFO)
logger = structlog.get_logger()

Permission = Literal["default", "granted", "denied"]


class Notifier(Protocol):
    """
    🎭 Protocol for alert notification targets.

    Mirrors the browser Notification API: a notifier starts with permission
    ``"default"``, can be asked once via ``request_permission()``, and only
    delivers while permission is ``"granted"``.

    Example:
        class MyNotifier:
            permission = "granted"

            def request_permission(self) -> str:
                return self.permission

            def send(self, title: str, body: str, image_url: str | None = None) -> None:
                ...
    """

    permission: Permission

    def request_permission(self) -> Permission: ...

    def send(self, title: str, body: str, image_url: str | None = None) -> None:
        """
        📤 Deliver one notification.

        Args:
            title: Short headline, e.g. "Bitcoin price alert"
            body: Detail line with the current and target price
            image_url: Optional thumbnail (the coin logo)
        """
        ...


class DiscordNotifier:
    """
    📢 Sends a single embed to one Discord webhook.
    """

    def __init__(self, webhook_url: str) -> None:
        self.webhook_url = webhook_url

    def send(self, title: str, body: str, image_url: str | None = None) -> None:
        logger.info("Sending to Discord", title=title)
        sentry_sdk.add_breadcrumb(
            category="notification",
            message="Sending Discord notification",
            level="info",
            data={"title": title, "platform": "Discord"},
        )

        webhook = DiscordWebhook(
            url=self.webhook_url,
            rate_limit_retry=True,
        )

        embed = DiscordEmbed(title=title, description=body, color="f7931a")
        if image_url:
            embed.set_thumbnail(url=image_url)
        embed.set_footer(text="cryptodash · Data: CoinGecko")
        embed.set_timestamp()
        webhook.add_embed(embed)
        response = webhook.execute()
        logger.info("Discord response", status_code=response.status_code)


class PlatformNotifier:
    """
    🎼 Fans a notification out to every configured Discord webhook.

    Permission is granted when at least one webhook is configured. A failing
    webhook is logged and reported to Sentry; the others still receive it.
    """

    def __init__(self, webhook_urls: list[str]) -> None:
        self.webhook_urls = list(webhook_urls)
        self.permission: Permission = "default"

    def request_permission(self) -> Permission:
        self.permission = "granted" if self.webhook_urls else "denied"
        logger.info(
            "Notification permission resolved",
            permission=self.permission,
            webhooks=len(self.webhook_urls),
        )
        return self.permission

    def send(self, title: str, body: str, image_url: str | None = None) -> None:
        notifications_sent = 0

        for webhook_url in self.webhook_urls:
            try:
                DiscordNotifier(webhook_url=webhook_url).send(title, body, image_url)
                notifications_sent += 1
            except Exception as e:
                logger.error(
                    "Failed to send notification",
                    title=title,
                    platform="Discord",
                    webhook_url=webhook_url[:50] + "...",  # Truncate for logging
                    error=str(e),
                )
                sentry_sdk.capture_exception(e)

        if notifications_sent == 0:
            logger.warning("No notifications delivered", title=title)


class LogNotifier:
    """Writes notifications to the log. Used when no webhook is configured."""

    permission: Permission = "granted"

    def request_permission(self) -> Permission:
        return self.permission

    def send(self, title: str, body: str, image_url: str | None = None) -> None:
        logger.warning(title, body=body)


def build_notifier(settings: Settings) -> PlatformNotifier | LogNotifier:
    """Pick Discord delivery when webhooks are configured, the log otherwise."""
    webhook_urls = settings.get_discord_webhook_urls()
    if webhook_urls:
        return PlatformNotifier(webhook_urls)
    logger.debug("Discord webhook not configured, alerts go to the log")
    return LogNotifier()
