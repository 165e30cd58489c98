"""Settings for the view service, read from the environment (and backend/.env)."""

import os

from pydantic import BaseModel, field_validator

DEFAULT_UPLOAD_SERVICE_URL = "http://localhost:8080"
DEFAULT_CATALOG_SERVICE_URL = "http://localhost:8081"
DEFAULT_ENCODING_SERVICE_URL = "http://localhost:8082"


class Settings(BaseModel):
    upload_service_url: str = DEFAULT_UPLOAD_SERVICE_URL
    catalog_service_url: str = DEFAULT_CATALOG_SERVICE_URL
    encoding_service_url: str = DEFAULT_ENCODING_SERVICE_URL
    job_poll_interval_seconds: float = 5.0
    reconcile_base_delay_seconds: float = 2.0
    reconcile_max_attempts: int = 5
    http_timeout_seconds: float = 10.0

    @field_validator("upload_service_url", "catalog_service_url", "encoding_service_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @field_validator(
        "job_poll_interval_seconds",
        "reconcile_base_delay_seconds",
        "reconcile_max_attempts",
        "http_timeout_seconds",
    )
    @classmethod
    def must_be_positive(cls, v):
        if v <= 0:
            raise ValueError("must be > 0")
        return v


def _env(name: str, default: str) -> str:
    return os.environ.get(name, "").strip() or default


def load_settings() -> Settings:
    """Build Settings from the current environment; unset or blank vars keep defaults."""
    return Settings(
        upload_service_url=_env("UPLOAD_SERVICE_URL", DEFAULT_UPLOAD_SERVICE_URL),
        catalog_service_url=_env("CATALOG_SERVICE_URL", DEFAULT_CATALOG_SERVICE_URL),
        encoding_service_url=_env("ENCODING_SERVICE_URL", DEFAULT_ENCODING_SERVICE_URL),
        job_poll_interval_seconds=_env("JOB_POLL_INTERVAL_SECONDS", "5"),
        reconcile_base_delay_seconds=_env("RECONCILE_BASE_DELAY_SECONDS", "2"),
        reconcile_max_attempts=_env("RECONCILE_MAX_ATTEMPTS", "5"),
        http_timeout_seconds=_env("HTTP_TIMEOUT_SECONDS", "10"),
    )
