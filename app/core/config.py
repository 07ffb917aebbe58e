from functools import lru_cache
from zoneinfo import ZoneInfo

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Global application configuration.

    Values are loaded from environment variables at runtime.

    These settings are used for:
    - DB connection
    - Zoom Server-to-Server OAuth credentials and retry policy
    - Internal API key
    - Reference timezone in which course templates are expressed
    """

    APP_NAME: str = "Class Schedule Sync"
    APP_ENV: str = Field("local", description="Environment name: local/dev/stage/prod")
    LOG_LEVEL: str = Field("INFO", description="Root log level for the service.")

    DB_URL: str = Field(
        "sqlite+aiosqlite:///./class_schedule.db",
        description="SQLAlchemy-compatible database URL",
    )
    DB_NULL_POOL: bool = Field(
        default=False,
        description=(
            "Open a new connection per session instead of pooling. Needed when "
            "the app is driven from several event loops (e.g. TestClient)."
        ),
    )

    INTERNAL_API_KEY: str | None = Field(
        default=None,
        description="API key required for hitting /internal endpoints",
    )

    SCHEDULE_TIMEZONE: str = Field(
        default="UTC",
        description="IANA timezone in which template times of day are expressed.",
    )

    # --- Zoom Server-to-Server OAuth ---
    ZOOM_ACCOUNT_ID: str | None = None
    ZOOM_CLIENT_ID: str | None = None
    ZOOM_CLIENT_SECRET: str | None = None
    ZOOM_API_BASE_URL: AnyHttpUrl | None = None
    ZOOM_TOKEN_URL: AnyHttpUrl | None = None

    ZOOM_SIMULATION_MODE: bool = Field(
        default=False,
        description=(
            "When true, meetings are not created on Zoom. Simulated ids and "
            "join URLs are returned instead."
        ),
    )
    ZOOM_RECURRENCE_COUNT: int = Field(
        default=12,
        description="Number of weekly occurrences in one recurring Zoom meeting (max 12 ≈ 3 months).",
    )
    ZOOM_MAX_ATTEMPTS: int = Field(
        default=3,
        description="Maximum attempts for transient Zoom failures (network, 5xx, 429).",
    )
    ZOOM_BACKOFF_SECONDS: float = Field(
        default=1.0,
        description="Base delay of the exponential backoff between Zoom retries.",
    )
    ZOOM_BACKOFF_MAX_SECONDS: float = Field(
        default=10.0,
        description="Upper bound of a single backoff delay.",
    )
    ZOOM_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="HTTP timeout applied to every Zoom request.",
    )

    SYNC_MAX_CONCURRENCY: int = Field(
        default=4,
        description="Number of occurrences synchronized in parallel during a bulk sync.",
    )

    @property
    def schedule_tz(self) -> ZoneInfo:
        return ZoneInfo(self.SCHEDULE_TIMEZONE)

    @property
    def is_zoom_configured(self) -> bool:
        return all([self.ZOOM_ACCOUNT_ID, self.ZOOM_CLIENT_ID, self.ZOOM_CLIENT_SECRET])

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """
    Cached accessor for application settings.

    Using LRU cache ensures settings are read and validated only once,
    while still being easily importable across the app.
    """
    return Settings()
