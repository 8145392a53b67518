from __future__ import annotations

import logging

from fastapi import Depends, Response
from fastapi.responses import JSONResponse

from leasing_auth.api.deps import get_account_service
from leasing_auth.api.routers.auth import clear_refresh_cookie
from leasing_auth.api.schemas.auth import (
    AuthUserResponse,
    MessageResponse,
    UpdateProfileRequest,
)
from leasing_auth.api.session import NEW_ACCESS_TOKEN_HEADER, require_session
from leasing_auth.application.services.account_service import AccountService
from leasing_auth.application.services.session_guard import GuardOutcome
from leasing_auth.domain.entities.user import UserIdentity


logger = logging.getLogger(__name__)


def _error(response: Response, status_code: int, message: str) -> JSONResponse:
    error = JSONResponse(status_code=status_code, content={"error": message})
    renewed = response.headers.get(NEW_ACCESS_TOKEN_HEADER)
    if renewed:
        error.headers[NEW_ACCESS_TOKEN_HEADER] = renewed
    return error


def _to_response(user: UserIdentity) -> AuthUserResponse:
    return AuthUserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        has_password=user.has_password,
        google_linked=bool(user.google_id),
    )


def get_me(session: GuardOutcome = Depends(require_session)):
    return _to_response(session.user)


def update_me(
    req: UpdateProfileRequest,
    response: Response,
    session: GuardOutcome = Depends(require_session),
    service: AccountService = Depends(get_account_service),
):
    try:
        user = service.update_profile(user_id=session.user.id, name=req.name)
    except ValueError as exc:
        return _error(response, 400, str(exc))
    if user is None:
        return _error(response, 404, "User not found")
    return _to_response(user)


def delete_me(
    response: Response,
    session: GuardOutcome = Depends(require_session),
    service: AccountService = Depends(get_account_service),
):
    if not service.delete(session.user.id):
        return _error(response, 404, "User not found")
    clear_refresh_cookie(response)
    logger.info("users_router: account_deleted user_id=%s", session.user.id)
    return MessageResponse(message="User deleted successfully")
