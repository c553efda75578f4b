"""Application settings and configuration."""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from holdings_recon.domain.models.enums import EventSourceKind


class Settings(BaseSettings):
    """
    Reconciliation configuration loaded from environment variables.

    Constructed explicitly and passed to ReconContext; there is no
    process-wide settings instance.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Holdings Reconciliation Engine"
    app_version: str = "0.1.0"
    log_level: str = "INFO"

    # Holdings cache
    database_url: str = "sqlite:///./holdings.db"

    # Live ledger node (HTTP)
    ledger_api_base: str = "http://localhost:8080"
    ledger_api_key: Optional[str] = None
    ledger_api_key_header: str = "Authorization"
    ledger_request_timeout_seconds: float = 15.0
    ledger_page_size: int = 500

    # Analytical mirror (SQL warehouse)
    mirror_database_url: Optional[str] = None
    mirror_events_table: str = "ledger_events"
    mirror_page_size: int = 10000

    default_event_source: EventSourceKind = EventSourceKind.LEDGER
    asset_query_chunk_size: int = 100

    # Locker contract custody address; transfers into/out of it are not ownership changes
    locker_address: Optional[str] = "0xb6f2481eba4df97b"

    # Repair and orchestration
    repair_batch_size: int = 200
    max_concurrency: int = 4
    run_timeout_seconds: float = 300.0

    # Retry policy for SourceUnavailable
    retry_max_attempts: int = 4
    retry_base_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 30.0
    retry_jitter_seconds: float = 1.0

    @field_validator("locker_address")
    @classmethod
    def _lowercase_address(cls, value: Optional[str]) -> Optional[str]:
        return value.strip().lower() if value else None

    @field_validator(
        "repair_batch_size",
        "max_concurrency",
        "retry_max_attempts",
        "ledger_page_size",
        "mirror_page_size",
        "asset_query_chunk_size",
    )
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value


def load_settings(**overrides) -> Settings:
    """Build a fresh Settings instance from the environment plus explicit overrides."""
    return Settings(**overrides)
