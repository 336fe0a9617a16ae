from pydantic_settings import BaseSettings
from typing import List, Any
import json
from pathlib import Path


def parse_cors_origins(v: Any) -> List[str]:
    """Parse CORS origins from string or list"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        # Try JSON parsing first
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        # Fall back to comma-separated
        return [origin.strip() for origin in v.split(',') if origin.strip()]
    return []


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "Maintrack"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # Server Configuration
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 5000

    # Routes are mounted at the root by default (/works, /auth/...)
    API_PREFIX: str = ""

    # ==========================================
    # Work item storage
    # ==========================================
    DATA_DIR: str = "data"
    DATA_FILE_PATTERN: str = "works_{year}.json"
    # Disable when DATA_DIR is a network share: a missing mount must surface as 503
    CREATE_DATA_DIR: bool = True
    SERIALIZE_PARTITION_WRITES: bool = True
    LOOKUP_LOOKBACK_YEARS: int = 1
    MAX_LOOKUP_LOOKBACK_YEARS: int = 2

    # ==========================================
    # Users database
    # ==========================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./maintrack.db"
    DB_ECHO: bool = False

    # ==========================================
    # Authentication
    # ==========================================
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 10080  # 7 days
    BCRYPT_ROUNDS: int = 12  # 4 for dev (fast), 12 for prod (secure)
    REQUIRE_AUTH: bool = False
    MIN_USERNAME_LENGTH: int = 3
    MIN_PASSWORD_LENGTH: int = 8

    # ==========================================
    # CORS (stored as comma-separated string, parsed to list)
    # ==========================================
    CORS_ORIGINS_STR: str = "http://localhost:5173,http://localhost:8080,http://127.0.0.1:5173,http://127.0.0.1:8080"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        return parse_cors_origins(self.CORS_ORIGINS_STR)

    MAX_REQUEST_SIZE_MB: int = 10

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "logs/maintrack.log"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if self.LOG_FILE:
            Path(self.LOG_FILE).parent.mkdir(exist_ok=True, parents=True)

    @property
    def DATA_PATH(self) -> Path:
        return Path(self.DATA_DIR)

    def get_partition_path(self, year: int) -> Path:
        """Path of the JSON file holding one year's work items"""
        return self.DATA_PATH / self.DATA_FILE_PATTERN.format(year=year)

    def is_dev_mode(self) -> bool:
        return self.ENVIRONMENT == "development"


# Create settings instance
settings = Settings()
