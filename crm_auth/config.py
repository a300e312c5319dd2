from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    # Application settings
    app_name: str = "CRM Auth"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Database settings
    database_url: str = "sqlite+aiosqlite:///./crm_auth.db"
    store_timeout_seconds: float = 5.0

    # Session lifetimes
    session_token_ttl_hours: int = 24
    refresh_token_ttl_days: int = 7
    invitation_ttl_days: int = 7

    # Password policy
    password_min_length: int = 8
    password_require_uppercase: bool = True
    password_require_lowercase: bool = True
    password_require_digit: bool = True
    password_require_special: bool = True
    bcrypt_rounds: int = 12

    # Session hardening
    revoke_session_on_refresh_reuse: bool = True
    refresh_reuse_grace_seconds: int = 5
    revoke_other_sessions_on_password_change: bool = True

    # Expired session sweep
    session_sweep_enabled: bool = True
    session_sweep_interval_minutes: int = 60

    # Rate limiting
    rate_limit_enabled: bool = True
    login_rate_limit: str = "10/minute"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # CORS settings
    allowed_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def cookie_secure(self) -> bool:
        return self.environment == "production"


settings = Settings()
