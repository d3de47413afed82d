"""Environment-driven runtime settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    """Process configuration resolved once from environment variables."""

    app_name: str
    app_version: str
    log_level: str
    database_path: Path

    # Demo data
    synthetic_random_seed: int
    synthetic_room_numbers: tuple[str, ...]
    synthetic_booking_count: int
    synthetic_horizon_days: int
    synthetic_max_stay_nights: int
    synthetic_nightly_rate: int

    # Timeline
    timeline_default_window_days: int
    timeline_max_window_days: int

    # Shift roster
    shift_week_start_weekday: int


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(
        app_name=os.getenv("APP_NAME", "Guesthouse Occupancy Engine"),
        app_version=os.getenv("APP_VERSION", "0.1.0"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        database_path=Path(os.getenv("ENGINE_DB_PATH", "data/occupancy_engine.db")),
        synthetic_random_seed=_env_int("SYNTHETIC_RANDOM_SEED", 42),
        synthetic_room_numbers=(
            "101", "102", "103", "104", "105",
            "201", "202", "203", "204", "205",
        ),
        synthetic_booking_count=_env_int("SYNTHETIC_BOOKING_COUNT", 40),
        synthetic_horizon_days=_env_int("SYNTHETIC_HORIZON_DAYS", 90),
        synthetic_max_stay_nights=_env_int("SYNTHETIC_MAX_STAY_NIGHTS", 7),
        synthetic_nightly_rate=_env_int("SYNTHETIC_NIGHTLY_RATE", 450_000),
        timeline_default_window_days=_env_int("TIMELINE_DEFAULT_WINDOW_DAYS", 30),
        timeline_max_window_days=_env_int("TIMELINE_MAX_WINDOW_DAYS", 62),
        shift_week_start_weekday=_env_int("SHIFT_WEEK_START_WEEKDAY", 0),
    )
