from functools import lru_cache
from typing import ClassVar

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # Store; ":memory:" keeps everything volatile (reset on restart)
    store_db_path: str = ":memory:"
    ticket_number_seed: int = 48200

    # Simulated log analysis delays, in seconds
    analysis_delay_seconds: float = 2.0
    on_demand_analysis_delay_seconds: float = 1.5

    # Identity used for tickets opened from the chat (no auth in the demo)
    demo_user_id: str = "demo-user"
    demo_user_name: str = "Demo User"
    technician_default_name: str = "IT Support"

    # Streamlit UIs talk to the API here
    api_url: str = "http://localhost:8000"

    # Dashboard default view (comma-separated ticket numbers)
    scripted_ticket_numbers: str = "48201,48320"

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @property
    def scripted_ticket_number_list(self) -> list[int]:
        return [int(n) for n in self.scripted_ticket_numbers.split(",") if n.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Lazily load and cache settings. Fails at first call, not at import time."""
    return Settings()
