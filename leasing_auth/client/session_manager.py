from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import replace
from typing import Any, Callable

import httpx
import jwt

from .api_client import ApiResult, AuthApiClient
from .scheduler import RenewalScheduler
from .state import SessionState
from .storage import (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    SESSION_KEYS,
    USER_KEY,
    StorageError,
    TokenStorage,
)


logger = logging.getLogger(__name__)


RENEW_BEFORE_EXPIRY_SECONDS = 5 * 60

Listener = Callable[[SessionState], None]


class SessionManager:
    """Device-side owner of the current session.

    Holds one authoritative ``SessionState``, mirrors it to ``storage`` and
    keeps a single renewal timer armed five minutes ahead of access token
    expiry. Every state transition is pushed synchronously to subscribers in
    subscription order.
    """

    def __init__(
        self,
        *,
        api: AuthApiClient,
        storage: TokenStorage,
        scheduler: RenewalScheduler | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._api = api
        self._storage = storage
        self._scheduler = scheduler or RenewalScheduler()
        self._clock = clock
        self._state = SessionState()
        self._listeners: dict[int, Listener] = {}
        self._next_listener_id = 0
        self._lock = threading.RLock()

    @property
    def state(self) -> SessionState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            listener_id = self._next_listener_id
            self._next_listener_id += 1
            self._listeners[listener_id] = listener
            listener(self._state)

        def unsubscribe() -> None:
            with self._lock:
                self._listeners.pop(listener_id, None)

        return unsubscribe

    def _set_state(self, **changes: Any) -> None:
        with self._lock:
            self._state = replace(self._state, **changes)
            for listener in list(self._listeners.values()):
                listener(self._state)

    def hydrate(self) -> SessionState:
        self._set_state(is_loading=True)
        try:
            token = self._storage.get(ACCESS_TOKEN_KEY)
            refresh_token = self._storage.get(REFRESH_TOKEN_KEY)
            user_json = self._storage.get(USER_KEY)
            user = json.loads(user_json) if user_json else None
        except (StorageError, ValueError):
            logger.exception("session_manager: hydrate_failed")
            self._set_state(is_loading=False)
            return self._state

        if token and user:
            self._set_state(
                is_authenticated=True,
                access_token=token,
                refresh_token=refresh_token,
                user=user,
                is_loading=False,
            )
            self._schedule_renewal(token)
        else:
            self._set_state(is_loading=False)
        return self._state

    def auth_header(self) -> dict[str, str]:
        token = self._state.access_token
        return {"Authorization": f"Bearer {token}"} if token else {}

    def login(self, *, email: str, password: str) -> bool:
        return self._establish(
            lambda: self._api.login(email=email, password=password),
            "Authentication failed",
        )

    def register(self, *, name: str, email: str, password: str) -> bool:
        return self._establish(
            lambda: self._api.register(name=name, email=email, password=password),
            "Registration failed",
        )

    def login_with_google_profile(
        self,
        *,
        google_id: str,
        email: str | None,
        name: str | None,
    ) -> bool:
        return self._establish(
            lambda: self._api.google_profile(google_id=google_id, email=email, name=name),
            "Google authentication failed",
        )

    def complete_external_login(
        self,
        *,
        token: str,
        refresh_token: str | None = None,
        user: dict[str, Any] | None = None,
    ) -> bool:
        """Adopt tokens delivered by the OAuth redirect (``?token=&refreshToken=``)."""
        if user is None:
            try:
                result = self._api.verify(access_token=token, refresh_token=refresh_token)
            except httpx.HTTPError as exc:
                self._set_state(is_loading=False, error=str(exc))
                return False
            user = result.data.get("user") if result.ok else None
            if not user:
                self._set_state(is_loading=False, error=result.error or "Invalid response from server")
                return False
            token = result.new_access_token or token
        self._save(token=token, user=user, refresh_token=refresh_token)
        return True

    def forgot_password(self, *, email: str) -> bool:
        self._set_state(is_loading=True, error=None)
        try:
            result = self._api.forgot_password(email=email)
        except httpx.HTTPError as exc:
            self._set_state(is_loading=False, error=str(exc) or "Recovery email request failed")
            return False
        if result.error:
            self._set_state(is_loading=False, error=result.error)
            return False
        self._set_state(is_loading=False)
        return True

    def refresh(self) -> bool:
        refresh_token = self._state.refresh_token
        if not refresh_token:
            self._clear()
            return False
        try:
            result = self._api.refresh(refresh_token=refresh_token)
        except httpx.HTTPError:
            logger.exception("session_manager: refresh_request_failed")
            self._clear()
            return False

        if result.error or result.data.get("requiresLogin"):
            logger.info("session_manager: refresh_rejected")
            self._clear()
            return False

        token = result.data.get("token")
        user = result.data.get("user")
        if token and user:
            self._save(token=token, user=user, refresh_token=result.data.get("refreshToken"))
            return True
        self._clear()
        return False

    def verify(self) -> bool:
        token = self._state.access_token
        if not token:
            return False
        try:
            result = self._api.verify(access_token=token, refresh_token=self._state.refresh_token)
        except httpx.HTTPError:
            logger.exception("session_manager: verify_request_failed")
            return self.refresh()

        if result.new_access_token:
            self._adopt_access_token(result.new_access_token)

        if result.ok:
            user = result.data.get("user")
            if user:
                self._write(USER_KEY, json.dumps(user))
                self._set_state(user=user)
            return True

        if result.data.get("requiresLogin"):
            return self.refresh()
        return False

    def logout(self) -> None:
        try:
            if self._state.access_token:
                self._api.logout(
                    access_token=self._state.access_token,
                    refresh_token=self._state.refresh_token,
                )
        except httpx.HTTPError:
            logger.warning("session_manager: logout_request_failed")
        finally:
            self._clear()

    def _establish(self, call: Callable[[], ApiResult], fallback_error: str) -> bool:
        self._set_state(is_loading=True, error=None)
        try:
            result = call()
        except httpx.HTTPError as exc:
            self._set_state(is_loading=False, error=str(exc) or fallback_error)
            return False

        if result.error:
            self._set_state(is_loading=False, error=result.error)
            return False

        token = result.data.get("token")
        user = result.data.get("user")
        if token and user:
            self._save(token=token, user=user, refresh_token=result.data.get("refreshToken"))
            return True

        self._set_state(is_loading=False, error="Invalid response from server")
        return False

    def _write(self, key: str, value: str) -> None:
        try:
            self._storage.set(key, value)
        except StorageError:
            logger.exception("session_manager: storage_write_failed key=%s", key)

    def _save(self, *, token: str, user: dict[str, Any], refresh_token: str | None) -> None:
        self._write(ACCESS_TOKEN_KEY, token)
        if refresh_token:
            self._write(REFRESH_TOKEN_KEY, refresh_token)
        self._write(USER_KEY, json.dumps(user))
        self._set_state(
            is_authenticated=True,
            access_token=token,
            refresh_token=refresh_token or self._state.refresh_token,
            user=user,
            is_loading=False,
            error=None,
        )
        self._schedule_renewal(token)

    def _adopt_access_token(self, token: str) -> None:
        self._write(ACCESS_TOKEN_KEY, token)
        self._set_state(access_token=token)
        self._schedule_renewal(token)

    def _clear(self) -> None:
        self._scheduler.cancel()
        for key in SESSION_KEYS:
            try:
                self._storage.remove(key)
            except StorageError:
                logger.exception("session_manager: storage_remove_failed key=%s", key)
        self._set_state(
            is_authenticated=False,
            access_token=None,
            refresh_token=None,
            user=None,
            is_loading=False,
            error=None,
        )

    def renewal_delay(self, token: str) -> float | None:
        """Seconds until renewal is due, floored at zero; ``None`` if ``exp`` is unreadable."""
        try:
            claims = jwt.decode(token, options={"verify_signature": False})
        except jwt.PyJWTError:
            return None
        exp = claims.get("exp")
        if not isinstance(exp, (int, float)):
            return None
        return max(0.0, exp - RENEW_BEFORE_EXPIRY_SECONDS - self._clock())

    def _schedule_renewal(self, token: str) -> None:
        delay = self.renewal_delay(token)
        if delay is None:
            logger.warning("session_manager: renewal_not_scheduled")
            return
        self._scheduler.schedule(delay, self._renew)
        logger.info("session_manager: renewal_scheduled in_seconds=%d", int(delay))

    def _renew(self) -> None:
        try:
            self.refresh()
        except Exception:  # noqa: BLE001
            logger.exception("session_manager: renewal_failed")
