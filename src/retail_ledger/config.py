from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    app_name: str = "Retail Ledger API"
    api_v1_prefix: str = "/api/v1"
    database_url: str = Field(
        default="sqlite:///./retail_ledger.db",
        validation_alias="DB__CONN",
        description="SQLAlchemy compatible database URL",
    )
    echo_sql: bool = Field(default=False, validation_alias="DB__ECHO")
    default_page_size: int = 50
    max_page_size: int = 200
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = Field(default="INFO", validation_alias="APP__LOG_LEVEL")
    enforce_permissions: bool = Field(default=False, validation_alias="APP__ENFORCE_PERMISSIONS")
    default_low_stock_threshold: int = 10
    host: str = Field(default="127.0.0.1", validation_alias="APP__HOST")
    port: int = Field(default=8000, validation_alias="APP__PORT")


@lru_cache()
def get_settings() -> Settings:
    return Settings()
