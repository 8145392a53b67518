from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import jwt

from leasing_auth.application.dto.auth import AccessTokenPayload
from leasing_auth.application.ports.token_port import TokenCodecPort
from leasing_auth.domain.exceptions import (
    InvalidAccessTokenError,
    InvalidPasswordResetTokenError,
)


ACCESS_TOKEN_TYPE = "access"
PASSWORD_RESET_TOKEN_TYPE = "password-reset"
REFRESH_TOKEN_BYTES = 32


class JwtTokenCodec(TokenCodecPort):
    def __init__(
        self,
        *,
        jwt_secret: str,
        access_ttl_minutes: int,
        refresh_ttl_days: int,
        password_reset_ttl_minutes: int = 60,
    ):
        self._jwt_secret = jwt_secret
        self._access_ttl_minutes = access_ttl_minutes
        self._refresh_ttl_days = refresh_ttl_days
        self._password_reset_ttl_minutes = password_reset_ttl_minutes

    def _encode(self, *, user_id: str, token_type: str, now: datetime, exp: datetime) -> str:
        payload = {
            "id": user_id,
            "sub": user_id,
            "type": token_type,
            "iat": int(now.timestamp()),
            "exp": int(exp.timestamp()),
            "jti": uuid4().hex,
        }
        return jwt.encode(payload, self._jwt_secret, algorithm="HS256")

    def _decode(self, token: str) -> dict:
        return jwt.decode(token, self._jwt_secret, algorithms=["HS256"])

    def create_access_token(self, *, user_id: str, now: datetime) -> tuple[str, datetime]:
        exp = now + timedelta(minutes=self._access_ttl_minutes)
        token = self._encode(user_id=user_id, token_type=ACCESS_TOKEN_TYPE, now=now, exp=exp)
        return token, exp

    def decode_access_token(self, *, token: str) -> AccessTokenPayload:
        try:
            payload = self._decode(token)
        except jwt.PyJWTError as exc:
            raise InvalidAccessTokenError("Invalid access token.") from exc

        if payload.get("type") != ACCESS_TOKEN_TYPE:
            raise InvalidAccessTokenError("Invalid token type.")

        user_id = payload.get("id") or payload.get("sub")
        if not user_id or not isinstance(user_id, str):
            raise InvalidAccessTokenError("Invalid token subject.")

        return AccessTokenPayload(
            user_id=user_id,
            expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
        )

    def create_password_reset_token(self, *, user_id: str, now: datetime) -> str:
        exp = now + timedelta(minutes=self._password_reset_ttl_minutes)
        return self._encode(user_id=user_id, token_type=PASSWORD_RESET_TOKEN_TYPE, now=now, exp=exp)

    def decode_password_reset_token(self, *, token: str) -> str:
        try:
            payload = self._decode(token)
        except jwt.PyJWTError as exc:
            raise InvalidPasswordResetTokenError("Invalid or expired token") from exc

        if payload.get("type") != PASSWORD_RESET_TOKEN_TYPE:
            raise InvalidPasswordResetTokenError("Invalid token type")

        user_id = payload.get("id") or payload.get("sub")
        if not user_id or not isinstance(user_id, str):
            raise InvalidPasswordResetTokenError("Invalid or expired token")
        return user_id

    def generate_refresh_token(self) -> str:
        return secrets.token_urlsafe(REFRESH_TOKEN_BYTES)

    def refresh_token_expires_at(self, *, now: datetime) -> datetime:
        return now + timedelta(days=self._refresh_ttl_days)