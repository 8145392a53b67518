from __future__ import annotations

from datetime import datetime, timezone

from leasing_auth.application.dto.auth import AuthUserOutput
from leasing_auth.domain.entities.user import UserIdentity


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def build_auth_user_output(user: UserIdentity) -> AuthUserOutput:
    return AuthUserOutput(
        id=user.id,
        name=user.name,
        email=user.email,
        has_password=user.has_password,
        google_linked=bool(user.google_id),
    )
