from __future__ import annotations

from typing import Protocol

from leasing_auth.application.dto.auth import ExternalIdentityInfo


class GoogleOauthPort(Protocol):
    def authorization_url(self, *, redirect_uri: str, state: str) -> str:
        ...

    def exchange_code(self, *, code: str, redirect_uri: str) -> str:
        ...

    def fetch_profile(self, *, access_token: str) -> ExternalIdentityInfo:
        ...

    def verify_id_token(self, *, id_token: str) -> ExternalIdentityInfo:
        ...
