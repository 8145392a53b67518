from __future__ import annotations

from datetime import datetime
from typing import Protocol

from leasing_auth.domain.commands import UserUpdateCommand
from leasing_auth.domain.entities.user import UserIdentity


class CredentialStorePort(Protocol):
    def get_by_id(self, *, user_id: str) -> UserIdentity | None:
        ...

    def get_by_email(self, *, email: str) -> UserIdentity | None:
        ...

    def get_by_google_id(self, *, google_id: str) -> UserIdentity | None:
        ...

    def list_all(self) -> list[UserIdentity]:
        ...

    def create(
        self,
        *,
        user_id: str,
        name: str,
        email: str,
        password_hash: str | None,
        google_id: str | None,
        now: datetime,
    ) -> UserIdentity:
        ...

    def apply(self, command: UserUpdateCommand, *, now: datetime) -> UserIdentity | None:
        ...

    def delete(self, *, user_id: str) -> bool:
        ...
