from __future__ import annotations

from fastapi import Depends, Request, Response
from starlette.concurrency import run_in_threadpool

from leasing_auth.api.deps import get_session_guard
from leasing_auth.application.services.session_guard import (
    AuthRequirement,
    GuardOutcome,
    GuardRequest,
    SessionGuard,
)


REFRESH_COOKIE_NAME = "refreshToken"
REFRESH_BODY_FIELD = "refreshToken"
NEW_ACCESS_TOKEN_HEADER = "X-New-Access-Token"

_BODYLESS_METHODS = {"GET", "HEAD", "OPTIONS", "DELETE"}


async def _body_refresh_token(request: Request) -> str | None:
    if request.method in _BODYLESS_METHODS:
        return None
    if "application/json" not in request.headers.get("content-type", ""):
        return None
    try:
        body = await request.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    value = body.get(REFRESH_BODY_FIELD)
    return value if isinstance(value, str) and value else None


async def read_refresh_token(request: Request) -> str | None:
    """Cookie first, then the JSON body's ``refreshToken`` field."""
    token = request.cookies.get(REFRESH_COOKIE_NAME)
    if token:
        return token
    return await _body_refresh_token(request)


async def require_session(
    request: Request,
    response: Response,
    guard: SessionGuard = Depends(get_session_guard),
) -> GuardOutcome:
    guard_request = GuardRequest(
        authorization=request.headers.get("authorization"),
        refresh_token=await read_refresh_token(request),
    )
    # Blocking store I/O.
    outcome = await run_in_threadpool(guard.authenticate, guard_request, AuthRequirement.PROTECTED)
    if outcome.new_access_token:
        response.headers[NEW_ACCESS_TOKEN_HEADER] = outcome.new_access_token
    return outcome
