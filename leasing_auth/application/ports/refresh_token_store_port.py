from __future__ import annotations

from datetime import datetime
from typing import Protocol

from leasing_auth.domain.entities.user import RefreshToken


class RefreshTokenStorePort(Protocol):
    def replace_for_user(
        self,
        *,
        user_id: str,
        token: str,
        expires_at: datetime,
        now: datetime,
    ) -> RefreshToken:
        ...

    def find_by_token(self, *, token: str) -> RefreshToken | None:
        ...

    def find_by_user(self, *, user_id: str) -> list[RefreshToken]:
        ...

    def delete_by_token(self, *, token: str) -> bool:
        ...

    def delete_by_user(self, *, user_id: str) -> bool:
        ...

    def delete_expired(self, *, now: datetime) -> int:
        ...
