from datetime import date, datetime
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    catalog_file: str = "data/catalog/sample_catalog.json"
    database_url: str = "sqlite:///data/quota.db"

    # Quota periods are counted in this zone when a caller gives no as_of date.
    timezone: str = "Asia/Taipei"

    log_level: str = "INFO"
    log_file: str = ""

    telegram_bot_token: str = ""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def today(self) -> date:
        return datetime.now(ZoneInfo(self.timezone)).date()


settings = Settings()
