from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PROJECT_INDEX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    app_name: str = "Project Index Client"
    app_env: str = "development"  # development, testing, production
    debug: bool = False
    host: str = "127.0.0.1"
    port: int = 8765

    # Endpoint resolution
    config_file_path: Path = Path("~/.chatgpt-indexer/api-url.json")
    preference_key: str = "api-url"

    # Backend
    api_key: str | None = None  # Sent as `apikey` to Supabase flavors
    chatgpt_project_url_base: str = "https://chatgpt.com/g/p-"
    supabase_select_columns: str = "id,title,created_at,last_confirmed_at"
    validate_timeout_seconds: float = 10.0
    fetch_timeout_seconds: float = 30.0

    # Recency
    recency_key: str = "recent-project-ids"
    recency_capacity: int = 10
    recent_display_count: int = 5  # 0 disables the recent section

    # Search
    search_threshold: float = 0.6

    # Storage
    state_file_path: Path = Path("~/.chatgpt-indexer/state.json")
    redis_url: str | None = None  # e.g., "redis://localhost:6379/0"
    redis_pool_size: int = 10

    @field_validator("config_file_path", "state_file_path")
    @classmethod
    def expand_user(cls, v: Path) -> Path:
        return v.expanduser()

    @field_validator("recent_display_count")
    @classmethod
    def validate_recent_display_count(cls, v: int) -> int:
        if v < 0:
            raise ValueError("RECENT_DISPLAY_COUNT cannot be negative (use 0 to disable)")
        return v

    @field_validator("search_threshold")
    @classmethod
    def validate_search_threshold(cls, v: float) -> float:
        """Similarity threshold is a ratio, not a distance."""
        if not 0.0 < v <= 1.0:
            raise ValueError("SEARCH_THRESHOLD must be in (0, 1]")
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
