"""
inFlow Connector Configuration

Uses pydantic-settings for type-safe environment variable loading.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

DEFAULT_INFLOW_BASE_URL = "https://cloudapi.inflowinventory.com"

# Find .env file: check CWD first, then parent (project root)
_env_file = Path(".env")
if not _env_file.exists():
    _parent_env = Path(__file__).resolve().parent.parent.parent / ".env"
    if _parent_env.exists():
        _env_file = _parent_env


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    app_name: str = "inFlow Connector"
    app_version: str = "1.0.0"
    app_env: str = "local"
    debug: bool = False

    # Redis (Celery broker + result backend)
    redis_url: str = "redis://localhost:6379/0"

    # inFlow Inventory API
    inflow_base_url: str = DEFAULT_INFLOW_BASE_URL
    inflow_company_id: str = ""
    inflow_api_key: str = ""
    inflow_timeout_seconds: float = 30.0

    # ── Polling ──────────────────────────────────────────────────────
    # One page per cycle; records beyond it are invisible to the detector.
    poll_page_size: int = Field(default=50, ge=1)
    poll_interval_seconds: int = 300
    poll_checkpoint_dir: str = "/data/poll/checkpoints"
    # JSON list, e.g. '[{"event":"salesOrder.fulfilled"},
    #   {"event":"inventory.changed","options":{"location_filter":"Main"}}]'
    poll_jobs: str = ""
    # Celery task that receives each emitted event; empty disables routing.
    poll_event_task: str = ""

    model_config = {
        "env_file": str(_env_file),
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance."""
    settings = Settings()
    _enforce_runtime_guardrails(settings)
    return settings


def is_local_env(app_env: str) -> bool:
    env = app_env.strip().lower()
    return env in {"", "local", "dev", "development", "test"}


def _enforce_runtime_guardrails(settings: Settings) -> None:
    if is_local_env(settings.app_env):
        return

    if settings.debug:
        raise ValueError("Refusing to start with debug=true outside local/dev/test")
    if not settings.inflow_company_id.strip():
        raise ValueError("Refusing to start without INFLOW_COMPANY_ID outside local/dev/test")
    if not settings.inflow_api_key.strip():
        raise ValueError("Refusing to start without INFLOW_API_KEY outside local/dev/test")
