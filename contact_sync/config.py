import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    LOG_LEVEL: str = "INFO"

    # Remote directory settings
    DIRECTORY_BASE_URL: str = "https://api.example-directory.com/v1"
    DIRECTORY_API_KEY: str | None = None
    REQUEST_TIMEOUT_SECONDS: float = 15.0
    SEARCH_INTERVAL_SECONDS: float = 1.0  # remote search cadence

    # Input
    CSV_FILE_PATH: str = "contacts.csv"

    # =================================================================
    # PIPELINE SETTINGS
    # =================================================================
    BATCH_SIZE: int = 2
    FLUSH_TIMEOUT_SECONDS: float = 60.0
    WORKER_COUNT: int = os.cpu_count() or 4
    INTAKE_QUEUE_SIZE: int = 100
    CREATE_QUEUE_SIZE: int = 500
    UPDATE_QUEUE_SIZE: int = 500
    RUN_TIMEOUT_SECONDS: float | None = None

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def get_pipeline_config(self) -> dict:
        """Get pipeline tuning values as keyword arguments for PipelineConfig."""
        return {
            "batch_size": self.BATCH_SIZE,
            "flush_timeout": self.FLUSH_TIMEOUT_SECONDS,
            "workers": self.WORKER_COUNT,
            "intake_capacity": self.INTAKE_QUEUE_SIZE,
            "create_capacity": self.CREATE_QUEUE_SIZE,
            "update_capacity": self.UPDATE_QUEUE_SIZE,
            "lookup_interval": self.SEARCH_INTERVAL_SECONDS,
        }


settings = Settings()

# =================================================================
# QUICK CONFIGURATION REFERENCE
# =================================================================
"""
Tune throughput against the directory's limits via .env.local:

SMALL FILES / SMOKE TESTS:
    BATCH_SIZE=2
    FLUSH_TIMEOUT_SECONDS=5

BULK IMPORT (default API plan):
    BATCH_SIZE=100
    WORKER_COUNT=8
    SEARCH_INTERVAL_SECONDS=1.0

"""
