import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        scheduler_enabled: bool,
        max_catch_up: int,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.scheduler_enabled = scheduler_enabled
        self.max_catch_up = max_catch_up


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("CHRONODEX_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_url = os.getenv("CHRONODEX_DATABASE_URL")
    if not database_url:
        default_db = _ensure_data_dir() / "chronodex.db"
        database_url = f"sqlite:///{default_db}"
    timezone = os.getenv("CHRONODEX_TIMEZONE", "Europe/Berlin")
    scheduler_enabled = _env_flag("CHRONODEX_SCHEDULER_ENABLED", "true")
    max_catch_up = int(os.getenv("CHRONODEX_MAX_CATCH_UP", "365"))
    return Settings(
        database_url=database_url,
        timezone=timezone,
        scheduler_enabled=scheduler_enabled,
        max_catch_up=max_catch_up,
    )
