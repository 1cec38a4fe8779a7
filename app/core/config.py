"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "1.00.00"

    # Database
    DATABASE_URL: str = "sqlite+pysqlite:///./supportbase.db"

    # Session Token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 24 * 30

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Shopify Admin API (customer lookup)
    SHOPIFY_STORE: str = ""  # e.g. my-store.myshopify.com
    SHOPIFY_ACCESS_TOKEN: str = ""
    SHOPIFY_API_VERSION: str = "2024-01"
    SHOPIFY_TIMEOUT_SECONDS: float = 10.0
    SHOPIFY_WEBHOOK_SECRET: str = ""  # Optional; verifies X-Shopify-Hmac-Sha256 when set

    # Quo (OpenPhone) webhooks
    QUO_WEBHOOK_SECRET: str = ""  # Optional; base64 signing key from the Quo dashboard
    WEBHOOK_MAX_PAYLOAD_BYTES: int = 256 * 1024

    # Expo mobile push
    EXPO_PUSH_URL: str = "https://exp.host/--/api/v2/push/send"
    EXPO_ACCESS_TOKEN: str = ""
    PUSH_TIMEOUT_SECONDS: float = 10.0

    # Web Push (VAPID)
    VAPID_PUBLIC_KEY: str = ""
    VAPID_PRIVATE_KEY: str = ""
    VAPID_EMAIL: str = "mailto:support@example.com"
    WEB_PUSH_TTL_SECONDS: int = 60

    # Realtime event stream
    SSE_KEEPALIVE_SECONDS: float = 30.0
    SSE_SUBSCRIBER_QUEUE_SIZE: int = 100

    # Ticket threading
    TICKET_REOPEN_WINDOW_DAYS: int = 7
    RECENT_ORDERS_LIMIT: int = 3

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Rate Limiting (requests per minute)
    RATE_LIMIT_WEBHOOK: int = 300
    RATE_LIMIT_API: int = 60

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Returns list of valid secrets (current first, then previous if set)."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets

    @property
    def shopify_configured(self) -> bool:
        return bool(self.SHOPIFY_STORE and self.SHOPIFY_ACCESS_TOKEN)

    @property
    def web_push_configured(self) -> bool:
        return bool(self.VAPID_PUBLIC_KEY and self.VAPID_PRIVATE_KEY)


settings = Settings()
