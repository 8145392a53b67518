from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from leasing_auth.application.ports.credential_store_port import CredentialStorePort
from leasing_auth.domain.commands import UpdateProfile
from leasing_auth.domain.entities.user import UserIdentity

from .auth_common import utcnow
from .token_service import TokenService


logger = logging.getLogger(__name__)


class AccountService:
    def __init__(
        self,
        *,
        credential_store: CredentialStorePort,
        token_service: TokenService,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._credential_store = credential_store
        self._token_service = token_service
        self._clock = clock

    def get(self, user_id: str) -> UserIdentity | None:
        return self._credential_store.get_by_id(user_id=user_id)

    def update_profile(self, *, user_id: str, name: str) -> UserIdentity | None:
        name = name.strip()
        if not name:
            raise ValueError("name is required.")
        return self._credential_store.apply(
            UpdateProfile(user_id=user_id, name=name),
            now=self._clock(),
        )

    def delete(self, user_id: str) -> bool:
        self._token_service.revoke_all_for_user(user_id)
        deleted = self._credential_store.delete(user_id=user_id)
        logger.info("account_service: deleted user_id=%s deleted=%s", user_id, deleted)
        return deleted
