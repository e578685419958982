from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


@dataclass(frozen=True)
class AppConfig:
    db_dsn: str
    min_history_months: int = 3
    accuracy_window: int = 10
    smoothing_alpha: float = 0.3
    default_confidence_level: float = 95.0


def load_config() -> AppConfig:
    """Load application config from environment variables.

    Loads .env file if present in the current directory.
    """
    env_path = Path(".env")
    if env_path.exists():
        load_dotenv(env_path)

    return AppConfig(
        db_dsn=os.environ.get("DATABASE_URL", ""),
        min_history_months=int(os.environ.get("FORECAST_MIN_HISTORY_MONTHS", "3")),
        accuracy_window=int(os.environ.get("FORECAST_ACCURACY_WINDOW", "10")),
        smoothing_alpha=float(os.environ.get("FORECAST_SMOOTHING_ALPHA", "0.3")),
        default_confidence_level=float(os.environ.get("FORECAST_DEFAULT_CONFIDENCE", "95")),
    )
