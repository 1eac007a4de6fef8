"""
Runtime configuration.

Values come from the process environment, with a `.env` file in the project
root loaded first (existing environment variables win).
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

project_root = Path(__file__).parent.parent


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """Engine settings."""
    database_url: str = f"sqlite:///{project_root / 'automation.db'}"
    db_echo: bool = False

    # External task store (HttpTaskStore)
    task_store_url: Optional[str] = None
    task_store_token: Optional[str] = None
    task_store_timeout: float = 30.0

    # Background tick
    scheduler_enabled: bool = False
    scheduler_tick_seconds: int = 15 * 60
    due_soon_hours: int = 24

    default_assignment_strategy: str = "least_busy"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv(project_root / ".env")
        settings = cls()

        if url := os.getenv("DATABASE_URL"):
            settings.database_url = url
        settings.db_echo = _env_bool("DB_ECHO", settings.db_echo)

        settings.task_store_url = os.getenv("TASK_STORE_URL")
        settings.task_store_token = os.getenv("TASK_STORE_TOKEN")
        if timeout := os.getenv("TASK_STORE_TIMEOUT"):
            settings.task_store_timeout = float(timeout)

        settings.scheduler_enabled = _env_bool("SCHEDULER_ENABLED", settings.scheduler_enabled)
        if tick := os.getenv("SCHEDULER_TICK_SECONDS"):
            settings.scheduler_tick_seconds = int(tick)
        if hours := os.getenv("DUE_SOON_HOURS"):
            settings.due_soon_hours = int(hours)

        if strategy := os.getenv("DEFAULT_ASSIGNMENT_STRATEGY"):
            settings.default_assignment_strategy = strategy
        if level := os.getenv("LOG_LEVEL"):
            settings.log_level = level.upper()

        return settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
