# Wobulezi - configuration
from functools import lru_cache
from pathlib import Path
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    secret_key: str = "dev-secret-change-in-production"
    database_url: str = "sqlite+aiosqlite:///./wobulezi.db"
    access_expire_minutes: int = 60
    reset_token_ttl_minutes: int = 60
    calendar_prodid: str = "-//Wobulezi School Events//EN"
    calendar_uid_domain: str = "wobulezi.edu"
    log_level: str = "INFO"
    audit_log_file: Path | None = None  # JSONL; memory only when unset
    audit_buffer_size: int = 500

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()
