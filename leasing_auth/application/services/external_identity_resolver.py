from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable
from uuid import uuid4

from leasing_auth.application.dto.auth import (
    AuthSuccess,
    ExternalIdentityInfo,
    GoogleProfileInput,
)
from leasing_auth.application.ports.credential_store_port import CredentialStorePort
from leasing_auth.application.ports.google_oauth_port import GoogleOauthPort
from leasing_auth.domain.commands import LinkExternalIdentity
from leasing_auth.domain.entities.user import UserIdentity
from leasing_auth.domain.exceptions import (
    ExternalProviderError,
    IncompleteExternalProfileError,
)

from .auth_common import normalize_email, utcnow
from .authentication_service import AuthenticationService


logger = logging.getLogger(__name__)


class ExternalIdentityResolver:
    """Turns a Google grant into a local identity and a local session.

    Three entry points (authorization code, submitted profile, ID token)
    converge on ``find_or_create_identity``. Provider calls happen before any
    identity write, so a provider failure never leaves a partial account.
    Tokens are minted by ``AuthenticationService.issue_session``.
    """

    def __init__(
        self,
        *,
        credential_store: CredentialStorePort,
        google_oauth: GoogleOauthPort,
        authentication_service: AuthenticationService,
        require_verified_email: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._credential_store = credential_store
        self._google_oauth = google_oauth
        self._authentication_service = authentication_service
        self._require_verified_email = require_verified_email
        self._clock = clock

    def authorization_url(self, *, redirect_uri: str, state: str) -> str:
        return self._google_oauth.authorization_url(redirect_uri=redirect_uri, state=state)

    def resolve_authorization_code(self, *, code: str, redirect_uri: str) -> AuthSuccess:
        if not code:
            raise ExternalProviderError("Missing authorization code.")
        access_token = self._google_oauth.exchange_code(code=code, redirect_uri=redirect_uri)
        info = self._google_oauth.fetch_profile(access_token=access_token)
        return self._complete(info)

    def resolve_profile(self, profile: GoogleProfileInput) -> AuthSuccess:
        info = ExternalIdentityInfo(
            subject=profile.google_id,
            email=profile.email,
            name=profile.name,
            email_verified=profile.email_verified,
        )
        return self._complete(info)

    def resolve_id_token(self, *, id_token: str) -> AuthSuccess:
        info = self._google_oauth.verify_id_token(id_token=id_token)
        return self._complete(info)

    def _complete(self, info: ExternalIdentityInfo) -> AuthSuccess:
        if not info.subject:
            raise IncompleteExternalProfileError("Google profile does not contain an id.")
        if not info.email:
            raise IncompleteExternalProfileError("Google profile does not contain email.")

        user = self.find_or_create_identity(
            external_id=info.subject,
            email=info.email,
            name=info.name,
            email_verified=info.email_verified,
        )
        return self._authentication_service.issue_session(user)

    def find_or_create_identity(
        self,
        *,
        external_id: str,
        email: str,
        name: str | None,
        email_verified: bool | None = None,
    ) -> UserIdentity:
        user = self._credential_store.get_by_google_id(google_id=external_id)
        if user is not None:
            return user

        email = normalize_email(email)
        user = self._credential_store.get_by_email(email=email)
        if user is not None:
            if self._require_verified_email and email_verified is not True:
                logger.warning(
                    "external_identity_resolver: merge_refused_unverified_email user_id=%s",
                    user.id,
                )
                raise ExternalProviderError("Google email is not verified.")

            linked = self._credential_store.apply(
                LinkExternalIdentity(user_id=user.id, google_id=external_id),
                now=self._clock(),
            )
            if linked is None:
                raise RuntimeError("Failed to update user with Google ID.")
            logger.info("external_identity_resolver: linked user_id=%s", user.id)
            return linked

        display_name = name.strip() if name and name.strip() else email.split("@")[0]
        created = self._credential_store.create(
            user_id=str(uuid4()),
            name=display_name,
            email=email,
            password_hash=None,
            google_id=external_id,
            now=self._clock(),
        )
        logger.info("external_identity_resolver: created user_id=%s", created.id)
        return created
