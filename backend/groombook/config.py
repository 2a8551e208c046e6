# backend/groombook/config.py

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]  # project root


class Settings(BaseSettings):
    database_url: str = "sqlite:///./data/groombook.db"
    redis_url: str = "redis://localhost:6379/0"

    # Single business timezone; all appointment times are stored as naive
    # local times in this zone.
    timezone: str = "America/Los_Angeles"
    log_level: str = "INFO"

    # Booking rules (see services/booking/config.py)
    slot_step_minutes: int = 30
    booking_buffer_minutes: int = 30
    buffer_minutes: int = 0
    max_advance_days: int = 90
    max_concurrent_appointments: int = 1
    lock_backend: str = "database"
    lock_timeout_seconds: float = 5.0
    reservation_retry_attempts: int = 3

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @property
    def resolved_database_url(self) -> str:
        url = self.database_url
        if url.startswith("sqlite:///./"):
            relative_path = url.replace("sqlite:///./", "")
            absolute_path = BASE_DIR / relative_path
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            return f"sqlite:///{absolute_path}"
        return url


settings = Settings()
