from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from leasing_auth.application.ports.credential_store_port import CredentialStorePort
from leasing_auth.domain.entities.user import UserIdentity
from leasing_auth.domain.exceptions import (
    InvalidAccessTokenError,
    UnauthorizedError,
    UnauthorizedReason,
)

from .token_service import TokenService


logger = logging.getLogger(__name__)


class AuthRequirement(str, Enum):
    PUBLIC = "public"
    PROTECTED = "protected"


@dataclass(frozen=True)
class GuardRequest:
    authorization: str | None
    refresh_token: str | None = None


@dataclass(frozen=True)
class GuardOutcome:
    user: UserIdentity | None
    new_access_token: str | None = None


def extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


class SessionGuard:
    """Admits protected requests.

    A request with a valid bearer token proceeds as its user. A request whose
    token failed verification is renewed through the refresh token, if one
    came along: the caller receives a fresh access token in
    ``GuardOutcome.new_access_token`` and the refresh token is left untouched.
    """

    def __init__(
        self,
        *,
        token_service: TokenService,
        credential_store: CredentialStorePort,
    ):
        self._token_service = token_service
        self._credential_store = credential_store

    def authenticate(
        self,
        request: GuardRequest,
        requirement: AuthRequirement = AuthRequirement.PROTECTED,
    ) -> GuardOutcome:
        if requirement is AuthRequirement.PUBLIC:
            return GuardOutcome(user=None)

        access_token = extract_bearer_token(request.authorization)
        if access_token is None:
            raise UnauthorizedError(UnauthorizedReason.NO_TOKEN)

        try:
            return self._authenticate(access_token, request.refresh_token)
        except UnauthorizedError:
            raise
        except Exception:
            logger.exception("session_guard: authenticate_failed")
            raise UnauthorizedError(UnauthorizedReason.INTERNAL_ERROR) from None

    def _authenticate(self, access_token: str, refresh_token: str | None) -> GuardOutcome:
        try:
            payload = self._token_service.verify_access_token(access_token)
        except InvalidAccessTokenError:
            return self._renew(refresh_token)

        user = self._credential_store.get_by_id(user_id=payload.user_id)
        if user is None:
            logger.info("session_guard: user_missing user_id=%s", payload.user_id)
            raise UnauthorizedError(UnauthorizedReason.SESSION_EXPIRED)
        return GuardOutcome(user=user)

    def _renew(self, refresh_token: str | None) -> GuardOutcome:
        if not refresh_token:
            raise UnauthorizedError(UnauthorizedReason.SESSION_EXPIRED)

        user_id = self._token_service.verify_refresh_token(refresh_token)
        if user_id is None:
            raise UnauthorizedError(UnauthorizedReason.SESSION_EXPIRED)

        user = self._credential_store.get_by_id(user_id=user_id)
        if user is None:
            raise UnauthorizedError(UnauthorizedReason.SESSION_EXPIRED)

        new_access_token, _ = self._token_service.issue_access_token(user.id)
        logger.info("session_guard: access_token_renewed user_id=%s", user.id)
        return GuardOutcome(user=user, new_access_token=new_access_token)
