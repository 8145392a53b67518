from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from leasing_auth.application.services.token_service import TokenService
from leasing_auth.domain.exceptions import (
    InvalidAccessTokenError,
    InvalidPasswordResetTokenError,
)
from leasing_auth.infrastructure.security.token_service import JwtTokenCodec


def test_access_token_round_trip(token_service):
    token, expires_at = token_service.issue_access_token("user-1")

    payload = token_service.verify_access_token(token)

    assert payload.user_id == "user-1"
    assert payload.expires_at == expires_at.replace(microsecond=0)


def test_two_access_tokens_for_same_user_differ(token_service):
    first, _ = token_service.issue_access_token("user-1")
    second, _ = token_service.issue_access_token("user-1")

    assert first != second


def test_expired_access_token_is_rejected(token_codec, refresh_token_store, clock):
    clock.advance(hours=-2)
    service = TokenService(token_codec=token_codec, refresh_token_store=refresh_token_store, clock=clock)
    token, _ = service.issue_access_token("user-1")

    with pytest.raises(InvalidAccessTokenError):
        service.verify_access_token(token)


def test_password_reset_token_is_not_an_access_token(token_service):
    reset_token = token_service.issue_password_reset_token("user-1")

    with pytest.raises(InvalidAccessTokenError):
        token_service.verify_access_token(reset_token)


def test_access_token_is_not_a_password_reset_token(token_service):
    access_token, _ = token_service.issue_access_token("user-1")

    with pytest.raises(InvalidPasswordResetTokenError) as exc_info:
        token_service.verify_password_reset_token(access_token)

    assert str(exc_info.value) == "Invalid token type"


def test_issuing_refresh_token_invalidates_previous_one(token_service, refresh_token_store):
    first = token_service.issue_refresh_token("user-1")
    second = token_service.issue_refresh_token("user-1")

    assert first.token != second.token
    assert token_service.verify_refresh_token(first.token) is None
    assert token_service.verify_refresh_token(second.token) == "user-1"
    assert len(refresh_token_store.find_by_user(user_id="user-1")) == 1


def test_refresh_tokens_of_other_users_are_untouched(token_service):
    alice = token_service.issue_refresh_token("alice")
    token_service.issue_refresh_token("bob")

    assert token_service.verify_refresh_token(alice.token) == "alice"


def test_expired_refresh_token_is_deleted_on_verification(token_service, refresh_token_store, clock):
    issued = token_service.issue_refresh_token("user-1")
    clock.advance(days=31)

    assert token_service.verify_refresh_token(issued.token) is None
    assert refresh_token_store.find_by_token(token=issued.token) is None
    assert token_service.verify_refresh_token(issued.token) is None


def test_refresh_token_expires_after_configured_days(token_service, clock):
    issued = token_service.issue_refresh_token("user-1")

    assert issued.expires_at == clock() + timedelta(days=30)


def test_verify_refresh_token_unknown_or_empty(token_service):
    assert token_service.verify_refresh_token("") is None
    assert token_service.verify_refresh_token("does-not-exist") is None


def test_verify_refresh_token_swallows_store_errors(token_codec, clock):
    class BrokenStore:
        def find_by_token(self, *, token):
            raise RuntimeError("db down")

    service = TokenService(token_codec=token_codec, refresh_token_store=BrokenStore(), clock=clock)

    assert service.verify_refresh_token("anything") is None


def test_revoke_refresh_token(token_service):
    issued = token_service.issue_refresh_token("user-1")

    assert token_service.revoke_refresh_token(issued.token) is True
    assert token_service.revoke_refresh_token(issued.token) is False
    assert token_service.verify_refresh_token(issued.token) is None


def test_revoke_all_for_user(token_service):
    issued = token_service.issue_refresh_token("user-1")

    assert token_service.revoke_all_for_user("user-1") is True
    assert token_service.verify_refresh_token(issued.token) is None
    assert token_service.revoke_all_for_user("user-1") is False


def test_purge_expired_refresh_tokens(token_service, refresh_token_store, clock):
    token_service.issue_refresh_token("old")
    clock.advance(days=20)
    token_service.issue_refresh_token("new")
    clock.advance(days=15)

    assert token_service.purge_expired_refresh_tokens() == 1
    assert refresh_token_store.find_by_user(user_id="old") == []
    assert len(refresh_token_store.find_by_user(user_id="new")) == 1


def test_password_reset_token_round_trip(token_service):
    token = token_service.issue_password_reset_token("user-1")

    assert token_service.verify_password_reset_token(token) == "user-1"


def test_garbage_password_reset_token(token_service):
    with pytest.raises(InvalidPasswordResetTokenError) as exc_info:
        token_service.verify_password_reset_token("not-a-jwt")

    assert str(exc_info.value) == "Invalid or expired token"


def test_fixed_clock_is_used_for_expiry():
    now = datetime(2030, 1, 1, tzinfo=timezone.utc)

    class Store:
        def replace_for_user(self, **kwargs):
            self.kwargs = kwargs

    store = Store()
    service = TokenService(
        token_codec=JwtTokenCodec(
            jwt_secret="fixed-clock-secret-0123456789abcdef",
            access_ttl_minutes=1,
            refresh_ttl_days=2,
        ),
        refresh_token_store=store,
        clock=lambda: now,
    )

    issued = service.issue_refresh_token("user-1")

    assert issued.expires_at == now + timedelta(days=2)
    assert store.kwargs["now"] == now
