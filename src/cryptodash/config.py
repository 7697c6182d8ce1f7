"""Configuration values for the cryptodash package."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    log_level: str = Field("INFO", description="Log level")

    coingecko_base_url: str = Field(
        "https://api.coingecko.com/api/v3", description="CoinGecko API base URL"
    )
    exchange_rate_url: str = Field(
        "https://api.exchangerate.host/latest",
        description="Exchange rate endpoint (takes base and symbols params)",
    )
    http_timeout: float = Field(10.0, description="Timeout for outbound HTTP calls")

    poll_interval: float = Field(10.0, description="Seconds between market polls")
    per_page: int = Field(10, description="Coins per market page (10, 50 or 100)")
    page: int = Field(1, description="Market page number")

    currency: str = Field("USD", description="Display currency (USD or INR)")
    fallback_exchange_rate: float = Field(
        82.0, description="USD to INR rate used when the rate lookup fails"
    )

    storage_path: str | None = Field(
        None, description="Local key-value storage file (default ~/.cryptodash)"
    )
    users_db_path: str | None = Field(
        None, description="User document store for the auth backend"
    )

    discord_webhook_url: str | None = Field(
        None, description="Discord webhook URL(s) for price alerts, comma separated"
    )

    api_base_url: str = Field(
        "http://127.0.0.1:5000", description="Auth backend URL used by the CLI"
    )
    api_host: str = Field("0.0.0.0", description="Auth backend bind address")
    api_port: int = Field(5000, description="Auth backend port")

    sentry_dsn: str | None = Field(None, description="Sentry DSN")
    sentry_environment: str = Field("production", description="Sentry environment")
    sentry_traces_sample_rate: float = Field(
        0.0, description="Sentry traces sample rate"
    )

    def get_discord_webhook_urls(self) -> list[str]:
        """Split the configured webhook setting into individual URLs."""
        if not self.discord_webhook_url:
            return []
        return [url.strip() for url in self.discord_webhook_url.split(",") if url.strip()]


settings = Settings()
