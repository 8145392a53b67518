from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from fastapi import APIRouter, Depends

from leasing_auth.api.routers import auth, users
from leasing_auth.api.schemas.auth import (
    AuthSessionResponse,
    AuthUserResponse,
    LogoutResponse,
    MessageResponse,
    VerifyTokenResponse,
)
from leasing_auth.api.session import require_session
from leasing_auth.application.services.session_guard import AuthRequirement


PUBLIC = AuthRequirement.PUBLIC
PROTECTED = AuthRequirement.PROTECTED


@dataclass(frozen=True)
class RouteEntry:
    method: str
    path: str
    endpoint: Callable
    requirement: AuthRequirement
    response_model: type | None = None


ROUTES: tuple[RouteEntry, ...] = (
    RouteEntry("POST", "/auth/register", auth.register, PUBLIC, AuthSessionResponse),
    RouteEntry("POST", "/auth/login", auth.login, PUBLIC, AuthSessionResponse),
    RouteEntry("POST", "/auth/refresh-token", auth.refresh_token, PUBLIC, AuthSessionResponse),
    RouteEntry("POST", "/auth/logout", auth.logout, PUBLIC, LogoutResponse),
    RouteEntry("POST", "/auth/forgot-password", auth.forgot_password, PUBLIC, MessageResponse),
    RouteEntry("POST", "/auth/reset-password", auth.reset_password, PUBLIC, MessageResponse),
    RouteEntry("GET", "/auth/google", auth.google_redirect, PUBLIC),
    RouteEntry("GET", "/auth/google/callback", auth.google_callback, PUBLIC),
    RouteEntry("POST", "/auth/google/profile", auth.google_profile, PUBLIC, AuthSessionResponse),
    RouteEntry("POST", "/auth/google/id-token", auth.google_id_token, PUBLIC, AuthSessionResponse),
    RouteEntry("GET", "/auth/verify-token", auth.verify_token, PROTECTED, VerifyTokenResponse),
    RouteEntry("GET", "/users/me", users.get_me, PROTECTED, AuthUserResponse),
    RouteEntry("PUT", "/users/me", users.update_me, PROTECTED, AuthUserResponse),
    RouteEntry("DELETE", "/users/me", users.delete_me, PROTECTED, MessageResponse),
)


def build_router(routes: tuple[RouteEntry, ...] = ROUTES) -> APIRouter:
    router = APIRouter()
    for route in routes:
        dependencies = []
        if route.requirement is PROTECTED:
            dependencies.append(Depends(require_session))
        router.add_api_route(
            route.path,
            route.endpoint,
            methods=[route.method],
            response_model=route.response_model,
            dependencies=dependencies,
        )
    return router
