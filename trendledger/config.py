"""Environment configuration."""

from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Storage
    db_path: Path = Path("trendledger.db")
    deployments_file: Path = Path("deployments.json")

    # Trend source (static fallback list when unset)
    trend_source_url: Optional[str] = None
    trend_source_timeout: float = 10.0

    # Metadata settings
    base_stake: str = "0.001"
    decay_rate: float = 0.95
    retention_days: int = 7
    update_interval_minutes: int = 10
    enable_scheduler: bool = False

    # Ledger settings
    default_balance: int = 1000

    # API server
    api_host: str = "0.0.0.0"
    api_port: int = 3001
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:8081",  # Expo dev server
    ]

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
