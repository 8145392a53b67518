from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from leasing_auth.domain.entities.user import RefreshToken, UserIdentity


def _as_str(value: Any) -> str:
    return str(value)


def _as_datetime(value: Any) -> datetime:
    # SQLite hands raw text() results back as ISO strings.
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def map_row_to_user(row: Mapping[str, Any]) -> UserIdentity:
    return UserIdentity(
        id=_as_str(row["id"]),
        name=row["name"],
        email=row["email"],
        password_hash=row.get("password_hash") or None,
        google_id=row.get("google_id"),
        created_at=_as_datetime(row["created_at"]),
        updated_at=_as_datetime(row["updated_at"]),
    )


def map_row_to_refresh_token(row: Mapping[str, Any]) -> RefreshToken:
    return RefreshToken(
        id=_as_str(row["id"]),
        user_id=_as_str(row["user_id"]),
        token=row["token"],
        expires_at=_as_datetime(row["expires_at"]),
        created_at=_as_datetime(row["created_at"]),
        updated_at=_as_datetime(row["updated_at"]),
    )
