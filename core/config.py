"""
REPCOACH Configuration

Environment variables and engine tunables.
"""

from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "REPCOACH"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8080", "http://10.0.2.2:8000"]

    # Confidence gate
    MIN_CONFIDENCE_FOR_FEEDBACK: float = 0.5  # skeleton/feedback only
    MIN_CONFIDENCE_FOR_COUNTING: float = 0.7  # reps and hold time

    # Frame sampling (process every Nth frame)
    FRAME_SAMPLE_RATE: int = 3  # ~10 FPS from a 30 FPS camera
    HIGH_CADENCE_FRAME_SAMPLE_RATE: int = 1  # ~30 FPS for jumping jacks

    # Session lifecycle
    AUTO_PAUSE_ON_BODY_LOSS: bool = True
    MAX_ACTIVE_SESSIONS: int = 100

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
