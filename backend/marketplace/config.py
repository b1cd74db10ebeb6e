from pathlib import Path
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    data_dir: Path = Path.home() / "FreelanceMarketplace"
    api_prefix: str = "/api"
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"

    session_ttl_seconds: int = 7 * 24 * 3600  # 1 week
    reset_token_ttl_seconds: int = 3600
    frontend_url: str = "http://localhost:5173"
    cors_origins: list[str] = [
        "http://127.0.0.1:5173",
        "http://localhost:5173",
    ]

    # Payment gateway. The webhook secret falls back to the key secret when unset.
    gateway_base_url: str = "https://api.razorpay.com/v1"
    gateway_key_id: str = ""
    gateway_key_secret: str = ""
    gateway_webhook_secret: str | None = None
    gateway_currency: str = "INR"
    gateway_timeout_seconds: float = 10.0

    # Outgoing mail. Notifications are only logged when smtp_host is empty.
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    mail_from: str = "no-reply@marketplace.local"

    @property
    def db_path(self) -> Path:
        return self.data_dir / "db.sqlite"

    @property
    def webhook_secret(self) -> str:
        return self.gateway_webhook_secret or self.gateway_key_secret

    model_config = {"env_prefix": "MARKETPLACE_"}


settings = Settings()
