"""Application settings loaded from .env file."""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    CORS_ORIGINS: str = "http://localhost:5173"

    # Schema conversion
    STRICT_VALIDATION: bool = False

    # Databases
    CONFIG_STORE_PATH: str = "data/databases.json"
    PRIMARY_SQLITE_PATH: str = "data/primary.db"

    # Connection pool (server dialects)
    POOL_SIZE: int = 10
    POOL_MAX_OVERFLOW: int = 0
    POOL_TIMEOUT_SECONDS: int = 30
    POOL_RECYCLE_SECONDS: int = 1800

    # Logging
    LOG_LEVEL: str = "INFO"

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
