"""
Application configuration module.
Handles environment variables and application settings.
"""

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import List


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # Application Settings
    APP_NAME: str = "Master Data Console"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Server Settings
    HOST: str = "localhost"
    PORT: int = 8080

    # Database Connection Settings
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = "postgres"
    DB_PASSWORD: str = "root"
    DB_NAME: str = "masters"
    DB_SCHEMA: str = "public"
    DB_POOL_SIZE: int = 10

    # Master table discovery
    MASTER_TABLE_SUFFIX: str = "_master"
    EXCLUDED_TABLES: List[str] = ["supplier_master"]
    SUPPLIER_TABLE: str = "supplier_master"
    CATALOG_TTL_SECONDS: float = 30.0

    # Column conventions shared by the master tables
    LABEL_COLUMNS: List[str] = ["PN2", "name"]
    REQUIRED_LABEL_COLUMN: str = "PN2"
    FLAG_COLUMN: str = "is_active"
    NUMERIC_COLUMNS: List[str] = ["inch"]
    AUTO_TIMESTAMP_COLUMNS: List[str] = ["created_at", "updated_at"]

    # CSV import
    CSV_PREVIEW_ROWS: int = 5
    FAILED_ROWS_RETENTION_SECONDS: float = 600.0
    FAILED_ROWS_SWEEP_INTERVAL_SECONDS: float = 60.0

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    ENABLE_FILE_LOGGING: bool = True

    # Environment
    ENVIRONMENT: str = "development"

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra='ignore'  # Ignore extra fields from .env
    )

    @property
    def DATABASE_URL(self) -> str:
        return (
            f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )


settings = Settings()
