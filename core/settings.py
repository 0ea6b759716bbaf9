"""Application settings and shared constants."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_name: str = "Shop Floor Tracker"
    database_url: str = Field("sqlite:///./shopfloor.db")

    log_level: str = Field("INFO")
    log_json: bool = Field(False)
    log_dir: Optional[Path] = Field(None)

    default_page_size: int = Field(100)
    max_page_size: int = Field(500)
    # Upper bound on entities removed by a single cascading delete
    max_cascade_items: int = Field(10_000)
    enforce_forward_status: bool = Field(True)
    default_station: str = Field("Manual")

    @field_validator("default_page_size", "max_page_size", "max_cascade_items")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings()
