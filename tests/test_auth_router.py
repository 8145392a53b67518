from __future__ import annotations

import asyncio
import threading
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from fastapi.testclient import TestClient

from leasing_auth.api.deps import (
    get_account_service,
    get_authentication_service,
    get_external_identity_resolver,
    get_password_recovery_service,
    get_session_guard,
)
from leasing_auth.api.route_table import PROTECTED, ROUTES, build_router
from leasing_auth.api.session import require_session
from leasing_auth.application.dto.auth import ExternalIdentityInfo
from leasing_auth.application.services.account_service import AccountService
from leasing_auth.application.services.external_identity_resolver import (
    ExternalIdentityResolver,
)
from leasing_auth.application.services.password_recovery import PasswordRecoveryService
from leasing_auth.application.services.session_guard import GuardOutcome, SessionGuard
from leasing_auth.application.services.token_service import TokenService
from leasing_auth.client.api_client import AuthApiClient
from leasing_auth.client.session_manager import SessionManager
from leasing_auth.client.storage import MemoryStorage
from leasing_auth.domain.exceptions import ExternalProviderError
from leasing_auth.main import create_app


class FakeGoogleOauth:
    def __init__(self):
        self.fail = False

    def authorization_url(self, *, redirect_uri: str, state: str) -> str:
        return f"https://accounts.example/auth?state={state}"

    def exchange_code(self, *, code: str, redirect_uri: str) -> str:
        if self.fail:
            raise ExternalProviderError("Google authorization code exchange failed.")
        return "google-access-token"

    def fetch_profile(self, *, access_token: str) -> ExternalIdentityInfo:
        return ExternalIdentityInfo(subject="g-1", email="bia@x.com", name="Bia", email_verified=True)

    def verify_id_token(self, *, id_token: str) -> ExternalIdentityInfo:
        return self.fetch_profile(access_token=id_token)


class FakeMailer:
    def __init__(self):
        self.sent = []

    def send(self, *, to: str, subject: str, html: str) -> None:
        self.sent.append(to)


@pytest.fixture
def google():
    return FakeGoogleOauth()


@pytest.fixture
def client(auth_service, token_service, credential_store, password_hasher, clock, google):
    app = create_app()
    resolver = ExternalIdentityResolver(
        credential_store=credential_store,
        google_oauth=google,
        authentication_service=auth_service,
        clock=clock,
    )
    recovery = PasswordRecoveryService(
        credential_store=credential_store,
        token_service=token_service,
        password_hasher=password_hasher,
        mailer=FakeMailer(),
        client_url="http://localhost:8081",
        clock=clock,
    )
    accounts = AccountService(credential_store=credential_store, token_service=token_service, clock=clock)
    guard = SessionGuard(token_service=token_service, credential_store=credential_store)

    app.dependency_overrides[get_authentication_service] = lambda: auth_service
    app.dependency_overrides[get_external_identity_resolver] = lambda: resolver
    app.dependency_overrides[get_password_recovery_service] = lambda: recovery
    app.dependency_overrides[get_account_service] = lambda: accounts
    app.dependency_overrides[get_session_guard] = lambda: guard
    return TestClient(app)


def _register(client, email="ana@x.com"):
    response = client.post(
        "/auth/register",
        json={"name": "Ana", "email": email, "password": "secret123"},
    )
    assert response.status_code == 200
    return response


def _expired_token(token_codec, refresh_token_store, clock, user_id):
    clock.advance(hours=-2)
    token, _ = TokenService(
        token_codec=token_codec,
        refresh_token_store=refresh_token_store,
        clock=clock,
    ).issue_access_token(user_id)
    clock.advance(hours=2)
    return token


def test_register_returns_session_and_sets_cookie(client):
    response = _register(client)

    body = response.json()
    assert body["user"]["email"] == "ana@x.com"
    assert body["user"]["hasPassword"] is True
    assert body["token"]
    assert body["refreshToken"]
    cookie = response.headers["set-cookie"]
    assert f"refreshToken={body['refreshToken']}" in cookie
    assert "HttpOnly" in cookie
    assert "samesite=strict" in cookie.lower()
    assert "Path=/" in cookie
    assert "Max-Age=2592000" in cookie
    assert "Secure" not in cookie


def test_register_duplicate_email(client):
    _register(client)

    response = client.post(
        "/auth/register",
        json={"name": "Other", "email": "ana@x.com", "password": "secret456"},
    )

    assert response.status_code == 409
    assert response.json() == {"error": "User already exists"}


def test_login_failure(client):
    _register(client)

    response = client.post("/auth/login", json={"email": "ana@x.com", "password": "nope"})

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid credentials"}


def test_login_success(client):
    _register(client)

    response = client.post("/auth/login", json={"email": "ana@x.com", "password": "secret123"})

    assert response.status_code == 200
    assert response.json()["user"]["name"] == "Ana"


def test_refresh_without_any_token_requires_login(client):
    response = client.post("/auth/refresh-token")

    assert response.status_code == 401
    assert response.json() == {"error": "Refresh token is required", "requiresLogin": True}
    assert "token" not in response.json()


def test_refresh_with_body_token_rotates(client):
    registered = _register(client).json()
    client.cookies.clear()

    response = client.post("/auth/refresh-token", json={"refreshToken": registered["refreshToken"]})

    assert response.status_code == 200
    assert response.json()["refreshToken"] != registered["refreshToken"]

    client.cookies.clear()
    replay = client.post("/auth/refresh-token", json={"refreshToken": registered["refreshToken"]})
    assert replay.status_code == 401
    assert replay.json() == {"error": "Invalid or expired refresh token", "requiresLogin": True}


def test_refresh_with_cookie(client):
    _register(client)

    response = client.post("/auth/refresh-token")

    assert response.status_code == 200
    assert response.json()["user"]["email"] == "ana@x.com"


def test_logout_with_garbage_token_succeeds_and_clears_cookie(client):
    response = client.post("/auth/logout", json={"refreshToken": "garbage"})

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Logged out successfully"}
    cookie = response.headers["set-cookie"]
    assert cookie.startswith("refreshToken=")
    assert "Max-Age=0" in cookie


def test_logout_revokes_cookie_token(client, token_service):
    registered = _register(client).json()

    client.post("/auth/logout")

    assert token_service.verify_refresh_token(registered["refreshToken"]) is None


def test_verify_token_with_valid_token(client):
    registered = _register(client).json()

    response = client.get("/auth/verify-token", headers={"Authorization": f"Bearer {registered['token']}"})

    assert response.status_code == 200
    assert response.json()["isValid"] is True
    assert response.json()["user"]["id"] == registered["user"]["id"]
    assert "X-New-Access-Token" not in response.headers


def test_verify_token_renews_expired_access_token(client, token_codec, refresh_token_store, clock):
    registered = _register(client).json()
    expired = _expired_token(token_codec, refresh_token_store, clock, registered["user"]["id"])

    response = client.get("/auth/verify-token", headers={"Authorization": f"Bearer {expired}"})

    assert response.status_code == 200
    new_token = response.headers["X-New-Access-Token"]
    assert new_token and new_token != expired
    followup = client.get("/auth/verify-token", headers={"Authorization": f"Bearer {new_token}"})
    assert followup.status_code == 200


def test_verify_token_without_header(client):
    response = client.get("/auth/verify-token")

    assert response.status_code == 401
    assert response.json()["error"] == "No token provided"
    assert response.json()["requiresLogin"] is True


def test_verify_token_expired_without_refresh_token(client, token_codec, refresh_token_store, clock):
    registered = _register(client).json()
    client.cookies.clear()
    expired = _expired_token(token_codec, refresh_token_store, clock, registered["user"]["id"])

    response = client.get("/auth/verify-token", headers={"Authorization": f"Bearer {expired}"})

    assert response.status_code == 401
    assert response.json()["error"] == "Session expired, please login again"
    assert response.json()["reason"] == "SessionExpired"


def test_google_redirect_passes_platform_as_state(client):
    response = client.get("/auth/google", params={"platform": "mobile"}, follow_redirects=False)

    assert response.status_code == 307
    assert response.headers["location"] == "https://accounts.example/auth?state=mobile"


def test_google_callback_mobile_deep_link(client):
    response = client.get(
        "/auth/google/callback",
        params={"code": "abc", "state": "mobile"},
        follow_redirects=False,
    )

    location = urlparse(response.headers["location"])
    query = parse_qs(location.query)
    assert response.status_code == 302
    assert location.scheme == "leasing-inventory"
    assert query["token"][0]
    assert query["refreshToken"][0]


def test_google_callback_web_sets_cookie(client):
    response = client.get(
        "/auth/google/callback",
        params={"code": "abc", "state": "web"},
        follow_redirects=False,
    )

    assert response.headers["location"].startswith("http://localhost:8081/auth?token=")
    assert "refreshToken=" in response.headers["set-cookie"]


def test_google_callback_failure_redirects_with_error(client, google, credential_store):
    google.fail = True

    response = client.get(
        "/auth/google/callback",
        params={"code": "abc", "state": "web"},
        follow_redirects=False,
    )

    assert response.headers["location"] == "http://localhost:8081/auth?error=google-auth-failed"
    assert credential_store.list_all() == []


def test_google_profile_login(client):
    response = client.post(
        "/auth/google/profile",
        json={"googleId": "g-7", "email": "gil@x.com", "name": "Gil"},
    )

    assert response.status_code == 200
    assert response.json()["user"]["googleLinked"] is True
    assert response.json()["user"]["hasPassword"] is False


def test_google_profile_without_email(client):
    response = client.post("/auth/google/profile", json={"googleId": "g-8", "name": "Nameless"})

    assert response.status_code == 400
    assert "email" in response.json()["error"]


def test_forgot_password_unknown_email(client):
    response = client.post("/auth/forgot-password", json={"email": "ghost@x.com"})

    assert response.status_code == 404
    assert response.json() == {"error": "User not found"}


def test_forgot_password_known_email(client):
    _register(client)

    response = client.post("/auth/forgot-password", json={"email": "ana@x.com"})

    assert response.status_code == 200
    assert response.json() == {"message": "Recovery email sent successfully"}


def test_reset_password_with_bad_token(client):
    response = client.post("/auth/reset-password", json={"token": "bad", "password": "newpass1"})

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid or expired token"}


def test_profile_endpoints(client, credential_store):
    registered = _register(client).json()
    headers = {"Authorization": f"Bearer {registered['token']}"}

    me = client.get("/users/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["email"] == "ana@x.com"

    updated = client.put("/users/me", headers=headers, json={"name": "Ana Maria"})
    assert updated.status_code == 200
    assert updated.json()["name"] == "Ana Maria"

    deleted = client.delete("/users/me", headers=headers)
    assert deleted.status_code == 200
    assert credential_store.list_all() == []

    after = client.get("/users/me", headers=headers)
    assert after.status_code == 401


def test_profile_requires_token(client):
    assert client.get("/users/me").status_code == 401



def test_logout_with_malformed_body_still_clears_cookie(client):
    wrong_type = client.post("/auth/logout", json={"refreshToken": 123})
    not_json = client.post(
        "/auth/logout",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    for response in (wrong_type, not_json):
        assert response.status_code == 200
        assert response.json()["success"] is True
        assert "Max-Age=0" in response.headers["set-cookie"]


def test_refresh_with_malformed_body_requires_login(client):
    response = client.post("/auth/refresh-token", json={"refreshToken": 123})

    assert response.status_code == 401
    assert response.json() == {"error": "Refresh token is required", "requiresLogin": True}


def test_validation_failure_is_an_error_body(client):
    response = client.post(
        "/auth/register",
        json={"name": "Ana", "email": "ana@x.com", "password": "12345"},
    )

    assert response.status_code == 400
    assert list(response.json()) == ["error"]
    assert response.json()["error"].startswith("password:")


def test_client_session_manager_surfaces_validation_error(client):
    def forward(request: httpx.Request) -> httpx.Response:
        served = client.request(
            request.method,
            request.url.path,
            content=request.content,
            headers={"Content-Type": "application/json"},
        )
        return httpx.Response(
            served.status_code,
            content=served.content,
            headers={"Content-Type": served.headers.get("content-type", "application/json")},
        )

    api = AuthApiClient(base_url="http://api.test", transport=httpx.MockTransport(forward))
    manager = SessionManager(api=api, storage=MemoryStorage())

    assert manager.register(name="Ana", email="ana@x.com", password="12345") is False
    assert manager.state.error.startswith("password:")


def test_profile_error_keeps_renewed_access_token(client, token_codec, refresh_token_store, clock):
    registered = _register(client).json()
    expired = _expired_token(token_codec, refresh_token_store, clock, registered["user"]["id"])

    response = client.put(
        "/users/me",
        headers={"Authorization": f"Bearer {expired}"},
        json={"name": "   "},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "name is required."}
    assert response.headers["X-New-Access-Token"]


class BarrierGuard:
    """Admits a request only once ``parties`` requests are inside the guard together."""

    def __init__(self, parties: int, user):
        self.barrier = threading.Barrier(parties, timeout=5)
        self.user = user

    def authenticate(self, request, requirement):
        self.barrier.wait()
        return GuardOutcome(user=self.user)


def test_guarded_requests_are_served_concurrently(credential_store, clock):
    user = credential_store.create(
        user_id="u-1",
        name="Ana",
        email="ana@x.com",
        password_hash="hashed:secret123",
        google_id=None,
        now=clock(),
    )
    app = create_app()
    guard = BarrierGuard(4, user)
    app.dependency_overrides[get_session_guard] = lambda: guard

    async def fire():
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
            return await asyncio.gather(
                *(http.get("/users/me", headers={"Authorization": "Bearer t"}) for _ in range(4))
            )

    responses = asyncio.run(fire())

    assert [response.status_code for response in responses] == [200] * 4
    assert all(response.json()["id"] == "u-1" for response in responses)


def test_only_protected_routes_carry_the_session_dependency():
    router = build_router()

    guarded = {
        (method, route.path)
        for route in router.routes
        for method in route.methods
        if method != "HEAD" and any(dep.dependency is require_session for dep in route.dependencies)
    }

    assert guarded == {(entry.method, entry.path) for entry in ROUTES if entry.requirement is PROTECTED}
