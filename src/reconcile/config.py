"""Reconciliation configuration loaded from environment variables."""

from pydantic import Field
from pydantic_settings import BaseSettings


class ReconcileConfig(BaseSettings):
    """Reconciliation configuration loaded from environment variables.

    Settings are loaded from RECONCILE_* environment variables with sensible
    defaults. For local development, create a .env file in the project root.
    """

    # Ranking
    result_limit: int = Field(
        default=5,
        ge=1,
        description="Maximum number of ranked timesheets returned per booking",
    )

    # Store access
    store_retry_attempts: int = Field(
        default=2,
        ge=1,
        description="Attempts per store call when it fails with a transient error",
    )
    store_retry_wait_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Fixed wait between transient-error retries",
    )

    # Status sweep
    sweep_reason: str = Field(
        default="Auto-completed: all confirmed dates have passed",
        description="Reason recorded on bookings flipped by the status sweep",
    )

    # Paths
    snapshot_path: str = Field(
        default="data/snapshot.json",
        description="JSON snapshot of bookings and timesheets used by scripts",
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "RECONCILE_",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


# Singleton pattern
_config: ReconcileConfig | None = None


def get_config() -> ReconcileConfig:
    """Get the reconciliation configuration singleton.

    Returns:
        ReconcileConfig: Reconciliation configuration instance
    """
    global _config
    if _config is None:
        _config = ReconcileConfig()
    return _config
