from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx


NEW_ACCESS_TOKEN_HEADER = "X-New-Access-Token"


@dataclass(frozen=True)
class ApiResult:
    status_code: int
    data: dict[str, Any] = field(default_factory=dict)
    new_access_token: str | None = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def error(self) -> str | None:
        value = self.data.get("error")
        return str(value) if value else None


class AuthApiClient:
    """Thin JSON client for the auth endpoints.

    Transport failures surface as ``httpx.HTTPError``; HTTP error statuses do
    not raise, they come back as an ``ApiResult`` carrying the ``error`` body.
    """

    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout_seconds,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> AuthApiClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @staticmethod
    def _result(response: httpx.Response) -> ApiResult:
        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        return ApiResult(
            status_code=response.status_code,
            data=data,
            new_access_token=response.headers.get(NEW_ACCESS_TOKEN_HEADER),
        )

    @staticmethod
    def _bearer(access_token: str | None) -> dict[str, str]:
        return {"Authorization": f"Bearer {access_token}"} if access_token else {}

    def _post(self, path: str, payload: dict, access_token: str | None = None) -> ApiResult:
        response = self._client.post(path, json=payload, headers=self._bearer(access_token))
        return self._result(response)

    def login(self, *, email: str, password: str) -> ApiResult:
        return self._post("/auth/login", {"email": email, "password": password})

    def register(self, *, name: str, email: str, password: str) -> ApiResult:
        return self._post(
            "/auth/register",
            {"name": name, "email": email, "password": password},
        )

    def refresh(self, *, refresh_token: str) -> ApiResult:
        return self._post("/auth/refresh-token", {"refreshToken": refresh_token})

    def logout(self, *, access_token: str | None, refresh_token: str | None) -> ApiResult:
        return self._post("/auth/logout", {"refreshToken": refresh_token}, access_token)

    def forgot_password(self, *, email: str) -> ApiResult:
        return self._post("/auth/forgot-password", {"email": email})

    def google_profile(self, *, google_id: str, email: str | None, name: str | None) -> ApiResult:
        return self._post(
            "/auth/google/profile",
            {"googleId": google_id, "email": email, "name": name},
        )

    def verify(self, *, access_token: str, refresh_token: str | None = None) -> ApiResult:
        headers = self._bearer(access_token)
        if refresh_token:
            # The guard reads the refresh token from the cookie on GET requests.
            headers["Cookie"] = f"refreshToken={refresh_token}"
        response = self._client.get("/auth/verify-token", headers=headers)
        return self._result(response)
