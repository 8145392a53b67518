from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


load_dotenv()


def _env(name: str, default: str | None = None) -> str | None:
    return os.getenv(name, default)


def _bool(name: str, default: str = "false") -> bool:
    value = _env(name, default) or ""
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _csv(name: str, default: str = "") -> tuple[str, ...]:
    value = _env(name, default) or ""
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    environment: str
    database_url: str
    jwt_secret: str
    jwt_access_ttl_minutes: int
    refresh_token_ttl_days: int
    password_reset_ttl_minutes: int
    bcrypt_rounds: int
    client_url: str
    api_url: str
    app_scheme: str
    google_client_id: str
    google_client_secret: str
    google_require_verified_email: bool
    google_http_timeout_seconds: float
    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_pass: str
    smtp_from: str
    smtp_use_tls: bool
    cors_origins: tuple[str, ...]
    log_level: str

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def google_callback_url(self) -> str:
        return f"{self.api_url.rstrip('/')}/auth/google/callback"


def get_settings() -> Settings:
    return Settings(
        environment=_env("ENVIRONMENT", "development"),
        database_url=_env("DATABASE_URL", ""),
        jwt_secret=_env("JWT_SECRET", ""),
        jwt_access_ttl_minutes=int(_env("JWT_ACCESS_TTL_MINUTES", "60")),
        refresh_token_ttl_days=int(_env("REFRESH_TOKEN_TTL_DAYS", "30")),
        password_reset_ttl_minutes=int(_env("PASSWORD_RESET_TTL_MINUTES", "60")),
        bcrypt_rounds=int(_env("BCRYPT_ROUNDS", "10")),
        client_url=_env("CLIENT_URL", "http://localhost:8081"),
        api_url=_env("API_URL", "http://localhost:3000"),
        app_scheme=_env("APP_SCHEME", "leasing-inventory"),
        google_client_id=_env("GOOGLE_CLIENT_ID", ""),
        google_client_secret=_env("GOOGLE_CLIENT_SECRET", ""),
        google_require_verified_email=_bool("GOOGLE_REQUIRE_VERIFIED_EMAIL"),
        google_http_timeout_seconds=float(_env("GOOGLE_HTTP_TIMEOUT_SECONDS", "10")),
        smtp_host=_env("SMTP_HOST", ""),
        smtp_port=int(_env("SMTP_PORT", "587")),
        smtp_user=_env("SMTP_USER", ""),
        smtp_pass=_env("SMTP_PASS", ""),
        smtp_from=_env("SMTP_FROM", "no-reply@leasing-inventory.local"),
        smtp_use_tls=_bool("SMTP_USE_TLS", "true"),
        cors_origins=_csv("CORS_ORIGINS", "*"),
        log_level=_env("LOG_LEVEL", "INFO"),
    )
