"""
Environment-based configuration using pydantic-settings.
Every value can be overridden with a SOUNDWAVE_* environment variable.
"""
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SOUNDWAVE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "SoundWave"
    VERSION: str = "0.1.0"
    ENV: str = "development"

    DATABASE_URL: str = "sqlite:///./soundwave.db"

    AUDIO_DIR: Path = Path("AudioFiles")
    MAX_UPLOAD_SIZE_MB: int = 100

    LOG_LEVEL: str = "INFO"

    @field_validator("AUDIO_DIR", mode="before")
    @classmethod
    def ensure_audio_dir(cls, v) -> Path:
        path = Path(v)
        path.mkdir(parents=True, exist_ok=True)
        return path

    @property
    def max_upload_size_bytes(self) -> int:
        return self.MAX_UPLOAD_SIZE_MB * 1024 * 1024


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
