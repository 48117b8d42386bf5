"""Runtime settings for the paddock pipeline, loaded from the environment."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Provider endpoints, throttling and batching knobs.

    Every value can be overridden with a ``PADDOCK_``-prefixed environment variable.
    """

    # Primary provider (historical statistics)
    jolpica_base_url: str = "https://api.jolpi.ca/ergast/f1"
    jolpica_min_interval: float = Field(
        default=0.25, description="Minimum seconds between primary requests"
    )
    jolpica_max_retries: int = 3
    backoff_base: float = Field(
        default=1.0, description="Base delay in seconds for exponential backoff"
    )
    lap_page_size: int = Field(default=100, description="Provider caps limit at 100")
    max_pages: int = 20
    rate_limit_retry_delay: float = Field(
        default=10.0,
        description="Wait before re-running a multi-page fetch rate-limited on page one",
    )

    # Secondary provider (high-resolution telemetry)
    openf1_base_url: str = "https://api.openf1.org/v1"
    openf1_min_interval: float = 0.35  # 3 req/s allowed; 350ms keeps us safe
    openf1_max_retries: int = 1

    # Encyclopedia summaries
    wikipedia_base_url: str = "https://en.wikipedia.org/api/rest_v1"

    # Transport
    request_timeout: float = 20.0
    use_curl_fallback: bool = True

    # Batching
    batch_concurrency: int = Field(default=5, ge=1)

    # Logging
    log_level: str = "INFO"
    log_file: Path | None = None

    model_config = {
        "env_prefix": "PADDOCK_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()
