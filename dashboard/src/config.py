"""
Dashboard service configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
All configuration values come from environment variables or .env files;
no hardcoded endpoints or credentials.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings


class DashboardSettings(BaseSettings):
    """Dashboard backend configuration.

    All values are loaded from environment variables. Required variables
    must be set; optional variables have sensible defaults.

    Attributes:
        compute_base_url: Base URL of the compute collaborator (must be HTTPS).
        compute_api_key: Optional API key sent as ``x-api-key``.
        compute_timeout_s: Per-request HTTP timeout for compute invocations.
        series_function: Function name invoked for time-range series.
        latest_function: Function name invoked for the latest reading.
        redis_url: Redis connection URL for the latest-reading cache.
        database_url: SQLAlchemy async URL of the registration store.
        api_tokens: ``token:user_id`` pairs, comma separated.
        cache_ttl_s: TTL of cached latest readings in seconds.
        poll_interval_s: Seconds between latest-reading polls per device.
        progress_step_interval_s: Delay between synthetic progress events.
        in_flight_timeout_s: Optional timeout releasing a stuck fetch.
            ``None`` keeps a fetch in flight until the collaborator settles.
        progressive_render: Sub-sample large series before reshaping.
        progressive_threshold: Row count above which sub-sampling applies.
        controller_device_id: Literal identifier of the pack controller.
        preload_device_ids: Devices fetched in the background at startup.
        log_level: Root log level.
    """

    compute_base_url: str
    compute_api_key: str = ""
    compute_timeout_s: float = 30.0
    series_function: str = "bms-series"
    latest_function: str = "bms-latest"
    redis_url: str = "redis://localhost:6379/0"
    database_url: str = "sqlite+aiosqlite:///./dashboard.db"
    api_tokens: str
    cache_ttl_s: int = 5
    poll_interval_s: int = 20
    progress_step_interval_s: float = 0.5
    in_flight_timeout_s: float | None = None
    progressive_render: bool = False
    progressive_threshold: int = 2000
    controller_device_id: str = "0700"
    preload_device_ids: str = ""
    log_level: str = "INFO"

    @field_validator("compute_base_url")
    @classmethod
    def compute_base_url_must_be_https(cls, v: str) -> str:
        """Validate that the compute base URL uses HTTPS."""
        if not v.lower().startswith("https://"):
            raise ValueError(f"COMPUTE_BASE_URL must use HTTPS (got: '{v[:20]}...').")
        return v.rstrip("/")

    @field_validator("compute_timeout_s")
    @classmethod
    def compute_timeout_must_be_positive(cls, v: float) -> float:
        """Validate the HTTP timeout is positive."""
        if v <= 0:
            raise ValueError("COMPUTE_TIMEOUT_S must be > 0")
        return v

    @field_validator("cache_ttl_s")
    @classmethod
    def cache_ttl_must_be_positive(cls, v: int) -> int:
        """Validate the latest-reading cache TTL is at least one second."""
        if v < 1:
            raise ValueError("CACHE_TTL_S must be >= 1")
        return v

    @field_validator("poll_interval_s")
    @classmethod
    def poll_interval_must_be_reasonable(cls, v: int) -> int:
        """Validate the poll interval does not hammer the compute backend."""
        if v < 5:
            raise ValueError("POLL_INTERVAL_S must be >= 5")
        return v

    @field_validator("progress_step_interval_s")
    @classmethod
    def progress_step_interval_must_be_non_negative(cls, v: float) -> float:
        """Validate the synthetic progress interval is non-negative."""
        if v < 0:
            raise ValueError("PROGRESS_STEP_INTERVAL_S must be >= 0")
        return v

    @field_validator("in_flight_timeout_s")
    @classmethod
    def in_flight_timeout_must_be_positive(cls, v: float | None) -> float | None:
        """Validate the optional in-flight timeout is positive when set."""
        if v is not None and v <= 0:
            raise ValueError("IN_FLIGHT_TIMEOUT_S must be > 0 when set")
        return v

    @field_validator("progressive_threshold")
    @classmethod
    def progressive_threshold_must_be_positive(cls, v: int) -> int:
        """Validate the progressive sampling threshold."""
        if v < 1:
            raise ValueError("PROGRESSIVE_THRESHOLD must be >= 1")
        return v

    @model_validator(mode="after")
    def _api_tokens_must_not_be_empty(self) -> "DashboardSettings":
        """Require at least one well-formed ``token:user_id`` entry."""
        if not any(
            ":" in entry and all(part.strip() for part in entry.split(":", 1))
            for entry in self.api_tokens.split(",")
        ):
            raise ValueError("API_TOKENS contains no valid token:user_id entries")
        return self

    @property
    def preload_ids(self) -> list[str]:
        """Preload device ids as a list, blanks dropped."""
        return [d.strip() for d in self.preload_device_ids.split(",") if d.strip()]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
