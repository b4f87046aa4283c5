"""
Application configuration settings.
"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings."""

    # App
    APP_NAME: str = "API Spectra"
    DEBUG: bool = False

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:8000"

    def get_cors_origins(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    # Target service
    BASE_URL: str = "http://localhost:3000"
    REQUEST_TIMEOUT: float = 30.0  # seconds, per HTTP call
    MAX_CONCURRENCY: int = 4  # 1 runs the suite sequentially

    # Synthesis
    VALIDATE_SPEC: bool = True
    SYNTHESIS_SEED: int = 0
    VALID_ID: int = 1
    INVALID_ID: int = 999

    # Regression files
    BASELINE_PATH: str = "regression/baseline.json"
    REGRESSION_RESULTS_PATH: str = "regression/regression-results.json"
    OVERRIDES_PATH: Optional[str] = None

    # Logging
    LOG_DIR: str = "logs"
    LOG_LEVEL: str = "INFO"

    # Monitoring
    ENABLE_METRICS: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
