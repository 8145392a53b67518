from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from leasing_auth.application.dto.auth import AccessTokenPayload, IssuedRefreshToken
from leasing_auth.application.ports.refresh_token_store_port import RefreshTokenStorePort
from leasing_auth.application.ports.token_port import TokenCodecPort

from .auth_common import utcnow


logger = logging.getLogger(__name__)


class TokenService:
    """Mints and validates access tokens and owns the refresh token lifecycle.

    Access tokens are stateless signed JWTs. Refresh tokens are opaque random
    strings persisted in the refresh token store, one live token per user:
    issuing a new one replaces whatever the user held before.

    Verification and revocation never raise to callers; storage failures are
    logged and reported as ``None``/``False``.
    """

    def __init__(
        self,
        *,
        token_codec: TokenCodecPort,
        refresh_token_store: RefreshTokenStorePort,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._codec = token_codec
        self._store = refresh_token_store
        self._clock = clock

    def issue_access_token(self, user_id: str) -> tuple[str, datetime]:
        return self._codec.create_access_token(user_id=user_id, now=self._clock())

    def issue_refresh_token(self, user_id: str) -> IssuedRefreshToken:
        now = self._clock()
        token = self._codec.generate_refresh_token()
        expires_at = self._codec.refresh_token_expires_at(now=now)
        self._store.replace_for_user(
            user_id=user_id,
            token=token,
            expires_at=expires_at,
            now=now,
        )
        logger.info("token_service: refresh_token_issued user_id=%s", user_id)
        return IssuedRefreshToken(token=token, expires_at=expires_at)

    def verify_access_token(self, token: str) -> AccessTokenPayload:
        """Raises ``InvalidAccessTokenError`` on bad signature, expiry or type."""
        return self._codec.decode_access_token(token=token)

    def verify_refresh_token(self, token: str) -> str | None:
        if not token:
            return None
        try:
            record = self._store.find_by_token(token=token)
            if record is None:
                return None
            if record.is_expired(self._clock()):
                self._store.delete_by_token(token=token)
                logger.info("token_service: refresh_token_expired user_id=%s", record.user_id)
                return None
            return record.user_id
        except Exception:
            logger.exception("token_service: verify_refresh_token_failed")
            return None

    def revoke_refresh_token(self, token: str) -> bool:
        if not token:
            return False
        try:
            return self._store.delete_by_token(token=token)
        except Exception:
            logger.exception("token_service: revoke_refresh_token_failed")
            return False

    def revoke_all_for_user(self, user_id: str) -> bool:
        try:
            revoked = self._store.delete_by_user(user_id=user_id)
        except Exception:
            logger.exception("token_service: revoke_all_failed user_id=%s", user_id)
            return False
        logger.info("token_service: refresh_tokens_revoked user_id=%s revoked=%s", user_id, revoked)
        return revoked

    def purge_expired_refresh_tokens(self) -> int:
        return self._store.delete_expired(now=self._clock())

    def issue_password_reset_token(self, user_id: str) -> str:
        return self._codec.create_password_reset_token(user_id=user_id, now=self._clock())

    def verify_password_reset_token(self, token: str) -> str:
        """Returns the user id; raises ``InvalidPasswordResetTokenError``."""
        return self._codec.decode_password_reset_token(token=token)
