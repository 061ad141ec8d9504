from __future__ import annotations

import logging
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_SQLITE_PATH = BASE_DIR / "data" / "app.db"
DEFAULT_DOCUMENTS_DIR = BASE_DIR / "data" / "documents"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    database_url: str = Field(
        default=f"sqlite:///{DEFAULT_SQLITE_PATH}",
        validation_alias="DATABASE_URL",
    )
    auth_secret_key: str = Field(
        default="change-me",
        validation_alias="AUTH_SECRET_KEY",
    )
    auth_access_token_expire_minutes: int = Field(
        default=60 * 24,
        validation_alias="AUTH_ACCESS_TOKEN_EXPIRE_MINUTES",
    )
    cache_ttl_seconds: int = Field(
        default=3600,
        validation_alias="CACHE_TTL_SECONDS",
    )
    documents_dir: Path = Field(
        default=DEFAULT_DOCUMENTS_DIR,
        validation_alias="DOCUMENTS_DIR",
    )
    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
    )
    cors_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        validation_alias="BACKEND_CORS_ORIGINS",
    )


settings = Settings()


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
