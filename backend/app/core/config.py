"""Application configuration managed via environment variables."""
from functools import lru_cache
from typing import List, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Partition Tracker"
    debug: bool = False
    log_level: str = "INFO"
    database_url: str = "postgresql+psycopg2://pbar@localhost:5432/pbar"
    opik_enabled: bool = False
    opik_api_key: str | None = None
    opik_project: str = "partition-tracker"
    partition_minutes: int = 5
    partition_status_todo: str = "TODO"
    partition_status_in_progress: str = "IN_PROGRESS"
    progress_mode: Literal["expected_total", "count"] = "expected_total"
    task_type_keywords: List[str] = ["reflow", "hermetics"]
    user_autocomplete_values: List[str] = []
    metrics_enabled: bool = True
    metrics_sample_interval_seconds: int = 10
    metrics_lookback_minutes: int = 120
    metrics_max_tasks: int = 200
    metrics_max_samples: int = 360
    scheduler_enabled: bool = True
    scheduler_timezone: str = "UTC"
    schedule_poll_interval_seconds: int = 60
    jobs_run_on_startup: bool = False

    @property
    def default_partition_seconds(self) -> int:
        return self.partition_minutes * 60

    @property
    def todo_status(self) -> str:
        label = (self.partition_status_todo or "").strip()
        return label or "TODO"

    @property
    def in_progress_status(self) -> str:
        label = (self.partition_status_in_progress or "").strip()
        return label or "IN_PROGRESS"


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


settings = get_settings()
