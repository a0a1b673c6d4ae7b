# tablepos/core/config.py

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    ENV: str = "development"
    DEBUG: bool = False

    # Security
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 720

    # Database
    DATABASE_URL: str = "sqlite:///./tablepos.db"

    # Floor & menu
    TABLE_COUNT: int = 10
    MENU_FILE: str | None = None
    CURRENCY: str = "INR"

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    CHECKOUT_RATE_LIMIT: str = "30/minute"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="forbid",
    )


settings = Settings()
