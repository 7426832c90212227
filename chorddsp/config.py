import logging
from functools import lru_cache
from typing import List, Literal

import structlog
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    APP_ENV: str = "development"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    CORS_ORIGINS: List[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    # Spectral analysis
    SPECTRAL_BACKEND: Literal["auto", "fft", "reference"] = "auto"

    # Onset detection (aubio)
    ONSET_METHOD: str = "default"
    ONSET_THRESHOLD: float = 0.3
    ONSET_SILENCE_DB: float = -70.0
    ONSET_MINIOI_MS: float = 20.0

    # HTTP input guard, ~60 s at 44.1 kHz
    MAX_INPUT_SAMPLES: int = 2_646_000


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    """Filter structlog output below ``level`` (e.g. "DEBUG", "warning")."""
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
    )


settings = get_settings()
