from __future__ import annotations

import logging
from urllib.parse import urlencode

import httpx
from google.auth.transport import requests
from google.oauth2 import id_token

from leasing_auth.application.dto.auth import ExternalIdentityInfo
from leasing_auth.application.ports.google_oauth_port import GoogleOauthPort
from leasing_auth.domain.exceptions import ExternalProviderError


logger = logging.getLogger(__name__)


GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"
GOOGLE_SCOPES = ("openid", "email", "profile")


def _parse_email_verified(raw) -> bool | None:
    if raw is None:
        return None
    if isinstance(raw, str):
        return raw.lower() == "true"
    return bool(raw)


def _identity_from_claims(payload: dict) -> ExternalIdentityInfo:
    subject = payload.get("sub") or payload.get("id")
    if not subject:
        raise ExternalProviderError("Google profile missing subject claim.")
    email = payload.get("email") if isinstance(payload.get("email"), str) else None
    name = payload.get("name") if isinstance(payload.get("name"), str) else None
    return ExternalIdentityInfo(
        subject=str(subject),
        email=email,
        name=name,
        email_verified=_parse_email_verified(payload.get("email_verified")),
    )


class GoogleOidcClient(GoogleOauthPort):
    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        timeout_seconds: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self._client_id = client_id
        self._client_secret = client_secret
        self._timeout = timeout_seconds
        self._transport = transport

    def _http(self) -> httpx.Client:
        return httpx.Client(timeout=self._timeout, transport=self._transport)

    def authorization_url(self, *, redirect_uri: str, state: str) -> str:
        params = {
            "client_id": self._client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": " ".join(GOOGLE_SCOPES),
            "state": state,
            "access_type": "online",
            "prompt": "select_account",
        }
        return f"{GOOGLE_AUTHORIZE_URL}?{urlencode(params)}"

    def exchange_code(self, *, code: str, redirect_uri: str) -> str:
        data = {
            "code": code,
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "redirect_uri": redirect_uri,
            "grant_type": "authorization_code",
        }
        try:
            with self._http() as client:
                response = client.post(GOOGLE_TOKEN_URL, data=data)
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("google_oidc_client: code_exchange_failed detail=%s", exc)
            raise ExternalProviderError("Google authorization code exchange failed.") from exc

        access_token = payload.get("access_token")
        if not access_token:
            raise ExternalProviderError("Google token response missing access_token.")
        return access_token

    def fetch_profile(self, *, access_token: str) -> ExternalIdentityInfo:
        try:
            with self._http() as client:
                response = client.get(
                    GOOGLE_USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("google_oidc_client: userinfo_failed detail=%s", exc)
            raise ExternalProviderError("Google profile request failed.") from exc
        return _identity_from_claims(payload)

    def verify_id_token(self, *, id_token: str) -> ExternalIdentityInfo:
        try:
            payload = id_token_verify(token=id_token, audience=self._client_id)
        except Exception as exc:  # pragma: no cover - depends on external validation errors
            raise ExternalProviderError("Invalid Google id_token.") from exc
        return _identity_from_claims(payload)


def id_token_verify(*, token: str, audience: str) -> dict:
    request = requests.Request()
    return id_token.verify_oauth2_token(token, request, audience)
