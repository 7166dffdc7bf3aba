"""Runtime settings, read from the environment or a local ``.env`` file."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SNAKES_DUEL_", env_file=".env", extra="ignore")

    db_path: Path = Path("results/matches.db")
    roll_clear_delay: float = 1.0  # seconds the dice stay visible after a move
    max_rounds: int = 5
    hazard_count: int = 11
    shortcut_count: int = 7
    max_layout_attempts: int = 10_000
    max_resolve_hops: int = 64
    recent_limit: int = 10
    log_level: str = "WARNING"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
