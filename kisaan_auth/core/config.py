from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEV_JWT_SECRET = "dev-secret-change-me"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_name: str = "kisaanmela-auth-api"
    env: str = "dev"
    log_level: str = "INFO"

    # JWT
    jwt_secret: str = DEV_JWT_SECRET
    jwt_issuer: str = "kisaanmela"
    jwt_audience: str = "kisaanmela-app"
    access_token_ttl_seconds: int = 60 * 60 * 24 * 7

    # OTP
    otp_len: int = 6
    otp_ttl_seconds: int = 10 * 60
    otp_max_attempts: int = 3
    # If true, the code is echoed back from /otp/send even in production.
    otp_dev_mode: bool = False

    # Fast2SMS (SMS OTP). No key means every send goes to the console channel.
    sms_service_authorization_key: str | None = None
    fast2sms_api_url: str = "https://www.fast2sms.com/dev/bulkV2"
    sms_timeout_seconds: float = 10.0
    sms_fallback_enabled: bool = True

    # Users
    user_email_domain: str = "kisaanmela.com"
    default_user_role: str = "farmer"

    # Data
    database_url: str = "sqlite+pysqlite:///:memory:"

    cors_allow_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    @field_validator("database_url", mode="before")
    @classmethod
    def _normalize_database_url(cls, v: str) -> str:
        # Hosted Postgres often hands out `postgres://...`, which SQLAlchemy rejects.
        if isinstance(v, str) and v.startswith("postgres://"):
            return "postgresql+psycopg://" + v[len("postgres://") :]
        if isinstance(v, str) and v.startswith("postgresql://"):
            return "postgresql+psycopg://" + v[len("postgresql://") :]
        return v

    @field_validator("jwt_secret")
    @classmethod
    def _require_secret(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("JWT_SECRET must not be empty")
        return v

    @model_validator(mode="after")
    def _reject_dev_secret_in_production(self) -> "Settings":
        if self.is_production and self.jwt_secret == DEV_JWT_SECRET:
            raise ValueError("JWT_SECRET must be set explicitly in production")
        return self

    @property
    def is_production(self) -> bool:
        return self.env.lower() == "production"

    @property
    def otp_ttl_label(self) -> str:
        minutes, seconds = divmod(self.otp_ttl_seconds, 60)
        if seconds:
            return f"{self.otp_ttl_seconds} second" + ("" if self.otp_ttl_seconds == 1 else "s")
        return f"{minutes} minute" + ("" if minutes == 1 else "s")


settings = Settings()
