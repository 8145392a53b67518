from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable
from uuid import uuid4

from leasing_auth.application.dto.auth import (
    AuthFailure,
    AuthResult,
    AuthSuccess,
    FailureReason,
    LoginInput,
    LogoutResult,
    RegisterInput,
)
from leasing_auth.application.ports.credential_store_port import CredentialStorePort
from leasing_auth.application.ports.password_hasher_port import PasswordHasherPort
from leasing_auth.domain.entities.user import UserIdentity
from leasing_auth.domain.exceptions import DuplicateIdentityError

from .auth_common import build_auth_user_output, normalize_email, utcnow
from .token_service import TokenService


logger = logging.getLogger(__name__)


class AuthenticationService:
    """Session establishment: register, login, refresh and logout.

    Every entry point ends in ``AuthSuccess`` or ``AuthFailure``; expected
    business failures are never raised. Unexpected infrastructure errors are
    logged here and reported as ``FailureReason.INTERNAL_ERROR``.
    """

    def __init__(
        self,
        *,
        credential_store: CredentialStorePort,
        token_service: TokenService,
        password_hasher: PasswordHasherPort,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._credential_store = credential_store
        self._token_service = token_service
        self._password_hasher = password_hasher
        self._clock = clock

    def issue_session(self, user: UserIdentity) -> AuthSuccess:
        access_token, access_expires_at = self._token_service.issue_access_token(user.id)
        refresh = self._token_service.issue_refresh_token(user.id)
        return AuthSuccess(
            user=build_auth_user_output(user),
            access_token=access_token,
            refresh_token=refresh.token,
            access_expires_at=access_expires_at,
            refresh_expires_at=refresh.expires_at,
        )

    def register(self, command: RegisterInput) -> AuthResult:
        email = normalize_email(command.email)
        try:
            if self._credential_store.get_by_email(email=email) is not None:
                logger.info("authentication_service: register_duplicate_email")
                return AuthFailure(FailureReason.DUPLICATE_EMAIL)

            password_hash = self._password_hasher.hash(command.password)
            user = self._credential_store.create(
                user_id=str(uuid4()),
                name=command.name.strip(),
                email=email,
                password_hash=password_hash,
                google_id=None,
                now=self._clock(),
            )
            result = self.issue_session(user)
        except DuplicateIdentityError:
            logger.info("authentication_service: register_duplicate_email")
            return AuthFailure(FailureReason.DUPLICATE_EMAIL)
        except Exception:
            logger.exception("authentication_service: register_failed")
            return AuthFailure(FailureReason.INTERNAL_ERROR)

        logger.info("authentication_service: registered user_id=%s", user.id)
        return result

    def login(self, command: LoginInput) -> AuthResult:
        email = normalize_email(command.email)
        try:
            user = self._credential_store.get_by_email(email=email)
            if user is None:
                return AuthFailure(FailureReason.INVALID_CREDENTIALS)

            if user.is_external_only:
                logger.info("authentication_service: login_external_only user_id=%s", user.id)
                return AuthFailure(FailureReason.EXTERNAL_AUTH_REQUIRED)
            if not user.has_password:
                return AuthFailure(FailureReason.INVALID_CREDENTIALS)

            if not self._password_hasher.verify(command.password, user.password_hash):
                logger.info("authentication_service: login_bad_password user_id=%s", user.id)
                return AuthFailure(FailureReason.INVALID_CREDENTIALS)

            return self.issue_session(user)
        except Exception:
            logger.exception("authentication_service: login_failed")
            return AuthFailure(FailureReason.INTERNAL_ERROR)

    def refresh_session(self, refresh_token: str | None) -> AuthResult:
        token = (refresh_token or "").strip()
        if not token:
            return AuthFailure(FailureReason.MISSING_TOKEN)

        try:
            user_id = self._token_service.verify_refresh_token(token)
            if user_id is None:
                return AuthFailure(FailureReason.INVALID_OR_EXPIRED_TOKEN)

            user = self._credential_store.get_by_id(user_id=user_id)
            if user is None:
                logger.warning("authentication_service: refresh_user_missing user_id=%s", user_id)
                return AuthFailure(FailureReason.USER_NOT_FOUND)

            # Rotation: the new refresh token replaces the presented one.
            return self.issue_session(user)
        except Exception:
            logger.exception("authentication_service: refresh_failed")
            return AuthFailure(FailureReason.INTERNAL_ERROR)

    def logout(self, refresh_token: str | None) -> LogoutResult:
        token = (refresh_token or "").strip()
        if token:
            revoked = self._token_service.revoke_refresh_token(token)
            logger.info("authentication_service: logout revoked=%s", revoked)
        return LogoutResult(success=True, message="Logged out successfully")
