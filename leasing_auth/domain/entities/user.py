from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class UserIdentity:
    id: str
    name: str
    email: str
    password_hash: str | None
    google_id: str | None
    created_at: datetime
    updated_at: datetime

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)

    @property
    def is_external_only(self) -> bool:
        return not self.password_hash and bool(self.google_id)


@dataclass(frozen=True)
class RefreshToken:
    id: str
    user_id: str
    token: str
    expires_at: datetime
    created_at: datetime
    updated_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at
