from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from sqlalchemy import text

from leasing_auth.application.ports.refresh_token_store_port import RefreshTokenStorePort
from leasing_auth.infrastructure.db.mappers.accounts_mapper import map_row_to_refresh_token


TOKEN_COLUMNS = "id, user_id, token, expires_at, created_at, updated_at"


class SqlRefreshTokenStore(RefreshTokenStorePort):
    def __init__(self, engine):
        self._engine = engine

    def replace_for_user(
        self,
        *,
        user_id: str,
        token: str,
        expires_at: datetime,
        now: datetime,
    ):
        insert_sql = f"""
            INSERT INTO refresh_tokens (
                id, user_id, token, expires_at, created_at, updated_at
            ) VALUES (
                :id, :user_id, :token, :expires_at, :created_at, :updated_at
            )
            RETURNING {TOKEN_COLUMNS}
        """
        with self._engine.begin() as conn:
            # Row lock on the owner serializes concurrent replacements for one user.
            conn.execute(
                text("UPDATE users SET updated_at = updated_at WHERE id = :user_id"),
                {"user_id": user_id},
            )
            conn.execute(
                text("DELETE FROM refresh_tokens WHERE user_id = :user_id"),
                {"user_id": user_id},
            )
            row = conn.execute(
                text(insert_sql),
                {
                    "id": str(uuid4()),
                    "user_id": user_id,
                    "token": token,
                    "expires_at": expires_at,
                    "created_at": now,
                    "updated_at": now,
                },
            ).mappings().one()
        return map_row_to_refresh_token(row)

    def find_by_token(self, *, token: str):
        sql = f"""
            SELECT {TOKEN_COLUMNS}
            FROM refresh_tokens
            WHERE token = :token
            LIMIT 1
        """
        with self._engine.connect() as conn:
            row = conn.execute(text(sql), {"token": token}).mappings().first()
        if row is None:
            return None
        return map_row_to_refresh_token(row)

    def find_by_user(self, *, user_id: str):
        sql = f"""
            SELECT {TOKEN_COLUMNS}
            FROM refresh_tokens
            WHERE user_id = :user_id
            ORDER BY created_at DESC
        """
        with self._engine.connect() as conn:
            rows = conn.execute(text(sql), {"user_id": user_id}).mappings().all()
        return [map_row_to_refresh_token(row) for row in rows]

    def delete_by_token(self, *, token: str) -> bool:
        with self._engine.begin() as conn:
            result = conn.execute(
                text("DELETE FROM refresh_tokens WHERE token = :token"),
                {"token": token},
            )
        return result.rowcount > 0

    def delete_by_user(self, *, user_id: str) -> bool:
        with self._engine.begin() as conn:
            result = conn.execute(
                text("DELETE FROM refresh_tokens WHERE user_id = :user_id"),
                {"user_id": user_id},
            )
        return result.rowcount > 0

    def delete_expired(self, *, now: datetime) -> int:
        with self._engine.begin() as conn:
            result = conn.execute(
                text("DELETE FROM refresh_tokens WHERE expires_at < :now"),
                {"now": now},
            )
        return result.rowcount
