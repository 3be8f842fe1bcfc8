"""
ExamGuard Configuration Settings

Timing windows and thresholds for the proctoring detectors live here so
that deployments can tune sensitivity without code changes.
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Configuration for the exam session & proctoring service."""

    # API Settings
    APP_NAME: str = "ExamGuard Service"
    DEBUG: bool = True
    PORT: int = 8002

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = False
    LOG_DIR: str = "logs"

    # Auth
    JWT_SECRET: str = "your-super-secret-key-min-32-chars-here"
    JWT_ALGORITHM: str = "HS256"

    # Record store (empty = in-memory)
    DATABASE_URL: str = ""

    # Face-Presence debounce (seconds)
    FACE_ABSENT_WINDOW: float = 10.0
    MULTIPLE_FACES_WINDOW: float = 5.0

    # Audio-Anomaly (levels are 0-255)
    AUDIO_NOISE_THRESHOLD: float = 80.0
    AUDIO_NOISE_WINDOW: float = 3.0
    AUDIO_SILENCE_FLOOR: float = 5.0
    AUDIO_SILENCE_WINDOW: float = 30.0

    # Fullscreen-Guard
    FULLSCREEN_REREQUEST_DELAY: float = 1.0

    # Detector sampling
    SENSOR_SAMPLE_TIMEOUT: float = 1.0
    SENSOR_QUEUE_SIZE: int = 64

    # Broadcast hub
    OBSERVER_QUEUE_SIZE: int = 256

    # Auto-submit
    AUTO_SUBMIT_SWEEP_INTERVAL: float = 30.0

    # Scoring
    NEGATIVE_MARKING_PENALTY: int = 1
    PASS_MARK: int = 70
    REVIEW_VIOLATION_THRESHOLD: int = 5

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
