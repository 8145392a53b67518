from __future__ import annotations

from datetime import datetime
from typing import Protocol

from leasing_auth.application.dto.auth import AccessTokenPayload


class TokenCodecPort(Protocol):
    def create_access_token(self, *, user_id: str, now: datetime) -> tuple[str, datetime]:
        ...

    def decode_access_token(self, *, token: str) -> AccessTokenPayload:
        ...

    def create_password_reset_token(self, *, user_id: str, now: datetime) -> str:
        ...

    def decode_password_reset_token(self, *, token: str) -> str:
        ...

    def generate_refresh_token(self) -> str:
        ...

    def refresh_token_expires_at(self, *, now: datetime) -> datetime:
        ...
