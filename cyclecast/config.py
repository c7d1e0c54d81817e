"""Application configuration loaded from environment variables."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file)."""

    # --- App ---
    app_name: str = "Cyclecast"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Remote enhanced predictor (Supabase RPC) ---
    supabase_url: str = ""  # empty disables the remote predictor
    supabase_anon_key: str = ""
    remote_timeout_seconds: float = 5.0

    # --- Local snapshot cache ---
    snapshot_cache_path: Path = Path.home() / ".cyclecast" / "period_data.json"

    # --- Prediction policy ---
    prediction_policy_path: Path | None = None  # None = bundled prediction_policy.yaml

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "CYCLECAST_",
    }

    @property
    def remote_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)


@lru_cache
def get_settings() -> Settings:
    return Settings()
