from __future__ import annotations

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from leasing_auth.application.ports.credential_store_port import CredentialStorePort
from leasing_auth.domain.commands import (
    ChangePassword,
    LinkExternalIdentity,
    UpdateProfile,
    UserUpdateCommand,
)
from leasing_auth.domain.exceptions import DuplicateIdentityError
from leasing_auth.infrastructure.db.mappers.accounts_mapper import map_row_to_user


USER_COLUMNS = "id, name, email, password_hash, google_id, created_at, updated_at"


class SqlCredentialStore(CredentialStorePort):
    def __init__(self, engine):
        self._engine = engine

    def _fetch_one(self, sql: str, params: dict):
        with self._engine.connect() as conn:
            row = conn.execute(text(sql), params).mappings().first()
        if row is None:
            return None
        return map_row_to_user(row)

    def get_by_id(self, *, user_id: str):
        sql = f"""
            SELECT {USER_COLUMNS}
            FROM users
            WHERE id = :user_id
            LIMIT 1
        """
        return self._fetch_one(sql, {"user_id": user_id})

    def get_by_email(self, *, email: str):
        sql = f"""
            SELECT {USER_COLUMNS}
            FROM users
            WHERE lower(email) = :email
            LIMIT 1
        """
        return self._fetch_one(sql, {"email": email.strip().lower()})

    def get_by_google_id(self, *, google_id: str):
        sql = f"""
            SELECT {USER_COLUMNS}
            FROM users
            WHERE google_id = :google_id
            LIMIT 1
        """
        return self._fetch_one(sql, {"google_id": google_id})

    def list_all(self):
        sql = f"""
            SELECT {USER_COLUMNS}
            FROM users
            ORDER BY created_at
        """
        with self._engine.connect() as conn:
            rows = conn.execute(text(sql)).mappings().all()
        return [map_row_to_user(row) for row in rows]

    def create(
        self,
        *,
        user_id: str,
        name: str,
        email: str,
        password_hash: str | None,
        google_id: str | None,
        now: datetime,
    ):
        sql = f"""
            INSERT INTO users (
                id, name, email, password_hash, google_id, created_at, updated_at
            ) VALUES (
                :id, :name, :email, :password_hash, :google_id, :created_at, :updated_at
            )
            RETURNING {USER_COLUMNS}
        """
        params = {
            "id": user_id,
            "name": name,
            "email": email,
            "password_hash": password_hash,
            "google_id": google_id,
            "created_at": now,
            "updated_at": now,
        }
        try:
            with self._engine.begin() as conn:
                row = conn.execute(text(sql), params).mappings().one()
        except IntegrityError as exc:
            raise DuplicateIdentityError("User already exists.") from exc
        return map_row_to_user(row)

    def apply(self, command: UserUpdateCommand, *, now: datetime):
        if isinstance(command, LinkExternalIdentity):
            assignment = "google_id = :value"
            value = command.google_id
        elif isinstance(command, ChangePassword):
            assignment = "password_hash = :value"
            value = command.password_hash
        elif isinstance(command, UpdateProfile):
            assignment = "name = :value"
            value = command.name
        else:
            raise TypeError(f"Unsupported user update command: {type(command).__name__}")

        sql = f"""
            UPDATE users
            SET {assignment},
                updated_at = :updated_at
            WHERE id = :user_id
            RETURNING {USER_COLUMNS}
        """
        with self._engine.begin() as conn:
            row = conn.execute(
                text(sql),
                {
                    "value": value,
                    "updated_at": now,
                    "user_id": command.user_id,
                },
            ).mappings().first()
        if row is None:
            return None
        return map_row_to_user(row)

    def delete(self, *, user_id: str) -> bool:
        with self._engine.begin() as conn:
            conn.execute(
                text("DELETE FROM refresh_tokens WHERE user_id = :user_id"),
                {"user_id": user_id},
            )
            result = conn.execute(
                text("DELETE FROM users WHERE id = :user_id"),
                {"user_id": user_id},
            )
        return result.rowcount > 0
