from __future__ import annotations

from functools import lru_cache
from urllib.parse import quote_plus

from pydantic import Field, PostgresDsn, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _build_postgres_dsn(
    *,
    host: str,
    port: int,
    name: str,
    user: str,
    password: str,
    ssl_mode: str,
) -> str:
    encoded_user = quote_plus(user)
    encoded_password = quote_plus(password) if password else ""
    auth = f"{encoded_user}:{encoded_password}" if encoded_password else encoded_user
    dsn = f"postgresql://{auth}@{host}:{port}/{name}"
    if ssl_mode:
        dsn = f"{dsn}?sslmode={quote_plus(ssl_mode)}"
    return dsn


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = Field(default="development", validation_alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    frontend_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        validation_alias="FRONTEND_ORIGINS",
    )
    app_base_url: str = Field(default="http://localhost:8000", validation_alias="APP_BASE_URL")
    storage_dir: str = Field(default="storage", validation_alias="STORAGE_DIR")
    media_max_size_bytes: int = Field(
        default=16 * 1024 * 1024,
        ge=1,
        validation_alias="MEDIA_MAX_SIZE_BYTES",
    )

    db_host: str = Field(default="localhost", validation_alias="DB_HOST")
    db_port: int = Field(default=5432, validation_alias="DB_PORT")
    db_name: str = Field(default="marketing_console_dev", validation_alias="DB_NAME")
    db_user: str = Field(default="marketing", validation_alias="DB_USER")
    db_password: str = Field(default="marketing", validation_alias="DB_PASSWORD")
    db_ssl_mode: str = Field(default="prefer", validation_alias="DB_SSL_MODE")

    database_url: PostgresDsn | None = Field(default=None, validation_alias="DATABASE_URL")

    email_api_key: str = Field(default="", validation_alias="EMAIL_API_KEY")
    email_api_url: str = Field(
        default="https://api.sendgrid.com/v3/mail/send",
        validation_alias="EMAIL_API_URL",
    )
    email_from_address: str = Field(
        default="no-reply@example.com",
        validation_alias="EMAIL_FROM_ADDRESS",
    )
    email_from_name: str = Field(default="Email Marketing App", validation_alias="EMAIL_FROM_NAME")
    email_send_delay_seconds: float = Field(
        default=0.1,
        ge=0.0,
        validation_alias="EMAIL_SEND_DELAY_SECONDS",
    )
    email_timeout_seconds: float = Field(default=30.0, validation_alias="EMAIL_TIMEOUT_SECONDS")

    whatsapp_api_version: str = Field(default="v18.0", validation_alias="WHATSAPP_API_VERSION")
    whatsapp_phone_number_id: str = Field(default="", validation_alias="WHATSAPP_PHONE_NUMBER_ID")
    whatsapp_access_token: str = Field(default="", validation_alias="WHATSAPP_ACCESS_TOKEN")
    whatsapp_webhook_verify_token: str = Field(
        default="",
        validation_alias="WHATSAPP_WEBHOOK_VERIFY_TOKEN",
    )
    whatsapp_app_secret: str = Field(default="", validation_alias="WHATSAPP_APP_SECRET")
    whatsapp_business_number: str = Field(default="", validation_alias="WHATSAPP_BUSINESS_NUMBER")
    whatsapp_timeout_seconds: float = Field(default=30.0, validation_alias="WHATSAPP_TIMEOUT_SECONDS")

    @computed_field
    @property
    def database_dsn(self) -> str:
        if self.database_url is not None:
            return str(self.database_url)
        return _build_postgres_dsn(
            host=self.db_host,
            port=self.db_port,
            name=self.db_name,
            user=self.db_user,
            password=self.db_password,
            ssl_mode=self.db_ssl_mode,
        )

    @property
    def frontend_origin_list(self) -> list[str]:
        return [item.strip() for item in self.frontend_origins.split(",") if item.strip()]

    @property
    def business_number(self) -> str:
        """Our own WhatsApp address as it appears in message rows."""
        return self.whatsapp_business_number or self.whatsapp_phone_number_id


@lru_cache
def get_settings() -> Settings:
    return Settings()
