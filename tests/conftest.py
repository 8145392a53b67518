from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from leasing_auth.application.services.authentication_service import AuthenticationService
from leasing_auth.application.services.token_service import TokenService
from leasing_auth.domain.commands import ChangePassword, LinkExternalIdentity, UpdateProfile
from leasing_auth.domain.entities.user import RefreshToken, UserIdentity
from leasing_auth.domain.exceptions import DuplicateIdentityError
from leasing_auth.infrastructure.security.token_service import JwtTokenCodec


JWT_SECRET = "test-secret-0123456789abcdef0123456789"


class FakeClock:
    def __init__(self, now: datetime | None = None):
        self.now = now or datetime.now(timezone.utc).replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeCredentialStore:
    def __init__(self):
        self.users: dict[str, UserIdentity] = {}
        self.fail_with: Exception | None = None

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def get_by_id(self, *, user_id: str) -> UserIdentity | None:
        self._check()
        return self.users.get(user_id)

    def get_by_email(self, *, email: str) -> UserIdentity | None:
        self._check()
        email_l = email.lower()
        for user in self.users.values():
            if user.email.lower() == email_l:
                return user
        return None

    def get_by_google_id(self, *, google_id: str) -> UserIdentity | None:
        self._check()
        for user in self.users.values():
            if user.google_id == google_id:
                return user
        return None

    def list_all(self) -> list[UserIdentity]:
        return list(self.users.values())

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
        self._check()
        for existing in self.users.values():
            if existing.email.lower() == email.lower() or (google_id and existing.google_id == google_id):
                raise DuplicateIdentityError("User already exists.")
        user = UserIdentity(
            id=user_id,
            name=name,
            email=email,
            password_hash=password_hash,
            google_id=google_id,
            created_at=now,
            updated_at=now,
        )
        self.users[user.id] = user
        return user

    def apply(self, command, *, now: datetime) -> UserIdentity | None:
        self._check()
        user = self.users.get(command.user_id)
        if user is None:
            return None
        if isinstance(command, LinkExternalIdentity):
            user = replace(user, google_id=command.google_id, updated_at=now)
        elif isinstance(command, ChangePassword):
            user = replace(user, password_hash=command.password_hash, updated_at=now)
        elif isinstance(command, UpdateProfile):
            user = replace(user, name=command.name, updated_at=now)
        else:
            raise TypeError(command)
        self.users[user.id] = user
        return user

    def delete(self, *, user_id: str) -> bool:
        return self.users.pop(user_id, None) is not None


class FakeRefreshTokenStore:
    def __init__(self):
        self.tokens: dict[str, RefreshToken] = {}

    def replace_for_user(
        self,
        *,
        user_id: str,
        token: str,
        expires_at: datetime,
        now: datetime,
    ) -> RefreshToken:
        self.delete_by_user(user_id=user_id)
        record = RefreshToken(
            id=str(uuid4()),
            user_id=user_id,
            token=token,
            expires_at=expires_at,
            created_at=now,
            updated_at=now,
        )
        self.tokens[token] = record
        return record

    def find_by_token(self, *, token: str) -> RefreshToken | None:
        return self.tokens.get(token)

    def find_by_user(self, *, user_id: str) -> list[RefreshToken]:
        return [t for t in self.tokens.values() if t.user_id == user_id]

    def delete_by_token(self, *, token: str) -> bool:
        return self.tokens.pop(token, None) is not None

    def delete_by_user(self, *, user_id: str) -> bool:
        stale = [t.token for t in self.tokens.values() if t.user_id == user_id]
        for token in stale:
            del self.tokens[token]
        return bool(stale)

    def delete_expired(self, *, now: datetime) -> int:
        expired = [t.token for t in self.tokens.values() if t.is_expired(now)]
        for token in expired:
            del self.tokens[token]
        return len(expired)


class FakePasswordHasher:
    def hash(self, plain_password: str) -> str:
        return f"hashed:{plain_password}"

    def verify(self, plain_password: str, password_hash: str | None) -> bool:
        return bool(password_hash) and password_hash == f"hashed:{plain_password}"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def credential_store() -> FakeCredentialStore:
    return FakeCredentialStore()


@pytest.fixture
def refresh_token_store() -> FakeRefreshTokenStore:
    return FakeRefreshTokenStore()


@pytest.fixture
def password_hasher() -> FakePasswordHasher:
    return FakePasswordHasher()


@pytest.fixture
def token_codec() -> JwtTokenCodec:
    return JwtTokenCodec(jwt_secret=JWT_SECRET, access_ttl_minutes=60, refresh_ttl_days=30)


@pytest.fixture
def token_service(token_codec, refresh_token_store, clock) -> TokenService:
    return TokenService(
        token_codec=token_codec,
        refresh_token_store=refresh_token_store,
        clock=clock,
    )


@pytest.fixture
def auth_service(credential_store, token_service, password_hasher, clock) -> AuthenticationService:
    return AuthenticationService(
        credential_store=credential_store,
        token_service=token_service,
        password_hasher=password_hasher,
        clock=clock,
    )
