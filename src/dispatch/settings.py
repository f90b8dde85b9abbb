"""Runtime tunables for the dispatch engine.

Values are read from ``DISPATCH_*`` environment variables (or a ``.env``
file) so radius, wait threshold and sweep cadence can differ per
deployment without code changes.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class DispatchSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DISPATCH_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Proximity matching
    primary_radius_km: float = 5.0
    secondary_radius_km: float = 10.0
    widen_after_seconds: int = 60

    # Reconciliation sweep
    sweep_interval_seconds: float = 60.0
    sweep_batch_size: int = 50
    online_scan_limit: int = 10

    # Delivery records
    delivery_eta_minutes: int = 60

    # Adapters
    notifier_adapter: str = "fake"
    inventory_adapter: str = "fake"


@lru_cache
def get_settings() -> DispatchSettings:
    """Return the process-wide settings instance."""
    return DispatchSettings()
