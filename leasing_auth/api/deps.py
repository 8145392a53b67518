from __future__ import annotations

from functools import lru_cache

from fastapi import HTTPException

from leasing_auth.application.services.account_service import AccountService
from leasing_auth.application.services.authentication_service import AuthenticationService
from leasing_auth.application.services.external_identity_resolver import (
    ExternalIdentityResolver,
)
from leasing_auth.application.services.password_recovery import PasswordRecoveryService
from leasing_auth.application.services.session_guard import SessionGuard
from leasing_auth.application.services.token_service import TokenService
from leasing_auth.infrastructure.clients.google_oidc_client import GoogleOidcClient
from leasing_auth.infrastructure.db.engine import get_engine
from leasing_auth.infrastructure.db.repositories.accounts_repository import SqlCredentialStore
from leasing_auth.infrastructure.db.repositories.refresh_token_repository import (
    SqlRefreshTokenStore,
)
from leasing_auth.infrastructure.mail.smtp_mailer import SmtpMailer
from leasing_auth.infrastructure.security.password_hasher import PasswordHasher
from leasing_auth.infrastructure.security.token_service import JwtTokenCodec
from leasing_auth.shared.config import get_settings


def _get_db_engine():
    settings = get_settings()
    if not settings.database_url:
        raise HTTPException(status_code=500, detail="DATABASE_URL is required.")
    return get_engine(settings.database_url)


def _get_credential_store() -> SqlCredentialStore:
    return SqlCredentialStore(_get_db_engine())


def _get_refresh_token_store() -> SqlRefreshTokenStore:
    return SqlRefreshTokenStore(_get_db_engine())


@lru_cache(maxsize=1)
def _get_password_hasher() -> PasswordHasher:
    return PasswordHasher(rounds=get_settings().bcrypt_rounds)


@lru_cache(maxsize=1)
def _get_token_codec() -> JwtTokenCodec:
    settings = get_settings()
    if not settings.jwt_secret:
        raise HTTPException(status_code=500, detail="JWT_SECRET is required.")
    return JwtTokenCodec(
        jwt_secret=settings.jwt_secret,
        access_ttl_minutes=settings.jwt_access_ttl_minutes,
        refresh_ttl_days=settings.refresh_token_ttl_days,
        password_reset_ttl_minutes=settings.password_reset_ttl_minutes,
    )


@lru_cache(maxsize=1)
def _get_google_oauth_client() -> GoogleOidcClient:
    settings = get_settings()
    if not settings.google_client_id:
        raise HTTPException(status_code=500, detail="GOOGLE_CLIENT_ID is required.")
    return GoogleOidcClient(
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
        timeout_seconds=settings.google_http_timeout_seconds,
    )


@lru_cache(maxsize=1)
def _get_mailer() -> SmtpMailer:
    settings = get_settings()
    if not settings.smtp_host:
        raise HTTPException(status_code=500, detail="SMTP_HOST is required.")
    return SmtpMailer(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_user,
        password=settings.smtp_pass,
        sender=settings.smtp_from,
        use_tls=settings.smtp_use_tls,
    )


def get_token_service() -> TokenService:
    return TokenService(
        token_codec=_get_token_codec(),
        refresh_token_store=_get_refresh_token_store(),
    )


def get_authentication_service() -> AuthenticationService:
    return AuthenticationService(
        credential_store=_get_credential_store(),
        token_service=get_token_service(),
        password_hasher=_get_password_hasher(),
    )


def get_external_identity_resolver() -> ExternalIdentityResolver:
    return ExternalIdentityResolver(
        credential_store=_get_credential_store(),
        google_oauth=_get_google_oauth_client(),
        authentication_service=get_authentication_service(),
        require_verified_email=get_settings().google_require_verified_email,
    )


def get_password_recovery_service() -> PasswordRecoveryService:
    settings = get_settings()
    return PasswordRecoveryService(
        credential_store=_get_credential_store(),
        token_service=get_token_service(),
        password_hasher=_get_password_hasher(),
        mailer=_get_mailer(),
        client_url=settings.client_url,
        reset_ttl_minutes=settings.password_reset_ttl_minutes,
    )


def get_account_service() -> AccountService:
    return AccountService(
        credential_store=_get_credential_store(),
        token_service=get_token_service(),
    )


def get_session_guard() -> SessionGuard:
    return SessionGuard(
        token_service=get_token_service(),
        credential_store=_get_credential_store(),
    )
