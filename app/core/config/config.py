from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from app.enums.missing_user_policy import MissingUserPolicy


class Settings(BaseSettings):
    """Application configuration loaded from the environment and .env"""

    # Основные настройки
    app_name: str = "CarCollection API"
    version: str = "1.0.0"
    host: str = "0.0.0.0"
    port: int = 3001
    debug: bool = False
    api_prefix: str = "/api"

    # Database
    database_url: str = "sqlite://db.sqlite3"

    # App Security
    secret_key: str
    recovery_secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 10
    mfa_token_expire_minutes: int = 5
    recovery_token_expire_minutes: int = 60
    mfa_issuer: str = "CarCollection"

    # SMTP
    smtp_server: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    mail_from: str = "CarCollection <no-reply@carcollection.local>"

    # Media
    media_root: Path = Path("uploads")
    max_images_per_collectible: int = 10

    # Currency relay
    currency_api_url: str = "https://api.frankfurter.app"
    default_base_currency: str = "USD"
    rates_refresh_seconds: float = 30
    rates_request_timeout: float = 10

    # Bidding
    use_in_memory_ledger: bool = False
    bid_conflict_retries: int = 3
    bid_history_missing_user: MissingUserPolicy = MissingUserPolicy.fail

    # CORS settings
    CORS_ALLOWED_ORIGINS: List[str] = [
        "https://dwp-frontend-carcoleccion.vercel.app",
        "http://localhost:3000",
    ]
    CORS_ALLOWED_METHODS: List[str] = ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"]
    CORS_ALLOWED_HEADERS: List[str] = ["Content-Type", "Authorization", "X-Requested-With"]
    CORS_EXPOSE_HEADERS: List[str] = ["Authorization"]

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def smtp_enabled(self) -> bool:
        return bool(self.smtp_server)


settings = Settings()
