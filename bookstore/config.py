import logging
import os

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv(".env")

DEFAULT_SORT_SAFELIST = (
    "id",
    "title",
    "year",
    "runtime",
    "price",
    "-id",
    "-title",
    "-year",
    "-runtime",
    "-price",
)


def _default_db_url() -> str:
    env_url = os.getenv("APP_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_url:
        return env_url

    user = os.getenv("POSTGRES_USER", "postgres")
    password = os.getenv("POSTGRES_PASSWORD", "postgres")
    db_name = os.getenv("POSTGRES_DB", "bookstore")
    host = os.getenv("POSTGRES_HOST", "localhost")
    port = os.getenv("POSTGRES_PORT", "5432")
    return f"postgresql+psycopg://{user}:{password}@{host}:{port}/{db_name}"


class Settings(BaseSettings):
    database_url: str = Field(default_factory=_default_db_url)
    query_timeout_seconds: float = Field(default=3.0, ge=0.001)
    default_page_size: int = Field(default=20, ge=1, le=100)
    sort_safelist: tuple[str, ...] = DEFAULT_SORT_SAFELIST
    strict_security: bool = False
    log_level: str = "INFO"
    otel_enabled: bool = False
    service_name: str = "bookstore"

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


def get_settings() -> Settings:
    settings = Settings()
    if settings.strict_security:
        insecure_markers = ("postgres:postgres@", "changeme", "change-me", "replace-me", "root@")
        if settings.database_url and any(marker in settings.database_url for marker in insecure_markers):
            raise RuntimeError("Insecure database credentials detected")
    return settings


def configure_logging(level: str | int = "INFO") -> None:
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    logging.getLogger().setLevel(level)
