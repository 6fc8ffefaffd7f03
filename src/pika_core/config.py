from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from pika_core.db import PostgresConfig


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    pg_dsn: str | None = Field(default=None, alias="PG_DSN")
    postgres_host: str | None = Field(default=None, alias="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, alias="POSTGRES_PORT")
    postgres_db: str | None = Field(default=None, alias="POSTGRES_DB")
    postgres_user: str | None = Field(default=None, alias="POSTGRES_USER")
    postgres_password: SecretStr | None = Field(default=None, alias="POSTGRES_PASSWORD")
    pg_schema: str = Field(default="public", alias="PG_SCHEMA")

    search_config: str = Field(default="english", alias="SEARCH_CONFIG")
    crawl_max_age_hours: float = Field(default=12.0, alias="CRAWL_MAX_AGE_HOURS")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    def postgres(self) -> PostgresConfig:
        return PostgresConfig(
            dsn=self.pg_dsn,
            host=self.postgres_host,
            port=self.postgres_port,
            db=self.postgres_db,
            user=self.postgres_user,
            password=self.postgres_password,
        )


def load_settings() -> Settings:
    return Settings()
