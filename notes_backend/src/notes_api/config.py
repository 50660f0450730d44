"""Notes API configuration via pydantic-settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Required: the app does not start without them
    JWT_SECRET: str
    DATABASE_URL: str

    # Sessions
    JWT_ALGORITHM: str = "HS256"
    SESSION_TTL_DAYS: int = 7
    SESSION_COOKIE_NAME: str = "session"
    COOKIE_SECURE: bool = True

    # Credentials
    BCRYPT_ROUNDS: int = 12
    PASSWORD_MIN_LENGTH: int = 8

    # HTTP
    # Per-statement database timeout; bounds how long a request can block on the store
    DB_TIMEOUT_SECONDS: float = 10.0
    FRONTEND_ORIGIN: str = "http://localhost:3000"

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    SEED_DEMO_USER: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
