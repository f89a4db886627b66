# backend/booking_core/config.py

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]  # repository root


class Settings(BaseSettings):
    database_url: str = "sqlite:///./data/sqlite/booking.db"
    redis_url: str = "redis://localhost:6379/0"

    salon_tz: str = "Europe/London"
    slot_step_minutes: int = 15
    schedule_cache_ttl_seconds: int = 86400

    waitlist_release_policy: Literal["revert", "expire"] = "revert"
    waitlist_candidate_limit: int = 25
    reserved_unpaid_hold_minutes: int = 3

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @property
    def resolved_database_url(self) -> str:
        url = self.database_url
        if url.startswith("sqlite:///./"):
            # relative sqlite path → absolute, anchored at repository root
            relative_path = url.replace("sqlite:///./", "")
            absolute_path = BASE_DIR / relative_path
            return f"sqlite:///{absolute_path}"
        return url


settings = Settings()
