from __future__ import annotations

import logging
from urllib.parse import urlencode

from fastapi import Depends, Response
from fastapi.responses import JSONResponse, RedirectResponse

from leasing_auth.api.deps import (
    get_authentication_service,
    get_external_identity_resolver,
    get_password_recovery_service,
)
from leasing_auth.api.schemas.auth import (
    AuthSessionResponse,
    AuthUserResponse,
    ForgotPasswordRequest,
    GoogleIdTokenRequest,
    GoogleProfileRequest,
    LoginRequest,
    LogoutResponse,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    VerifyTokenResponse,
)
from leasing_auth.api.session import REFRESH_COOKIE_NAME, read_refresh_token, require_session
from leasing_auth.application.dto.auth import (
    AuthFailure,
    AuthSuccess,
    AuthUserOutput,
    FailureReason,
    GoogleProfileInput,
    LoginInput,
    RegisterInput,
)
from leasing_auth.application.services.auth_common import build_auth_user_output
from leasing_auth.application.services.authentication_service import AuthenticationService
from leasing_auth.application.services.external_identity_resolver import (
    ExternalIdentityResolver,
)
from leasing_auth.application.services.password_recovery import PasswordRecoveryService
from leasing_auth.application.services.session_guard import GuardOutcome
from leasing_auth.domain.exceptions import (
    ExternalProviderError,
    IncompleteExternalProfileError,
)
from leasing_auth.shared.config import get_settings


logger = logging.getLogger(__name__)

GOOGLE_AUTH_FAILED = "google-auth-failed"
PLATFORMS = ("web", "mobile")

FAILURE_STATUS = {
    FailureReason.DUPLICATE_EMAIL: 409,
    FailureReason.INVALID_CREDENTIALS: 401,
    FailureReason.EXTERNAL_AUTH_REQUIRED: 401,
    FailureReason.MISSING_TOKEN: 401,
    FailureReason.INVALID_OR_EXPIRED_TOKEN: 401,
    FailureReason.USER_NOT_FOUND: 401,
    FailureReason.INTERNAL_ERROR: 500,
}


def set_refresh_cookie(response: Response, refresh_token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        key=REFRESH_COOKIE_NAME,
        value=refresh_token,
        httponly=True,
        samesite="strict",
        secure=settings.is_production,
        max_age=settings.refresh_token_ttl_days * 24 * 60 * 60,
        path="/",
    )


def clear_refresh_cookie(response: Response) -> None:
    settings = get_settings()
    response.delete_cookie(
        key=REFRESH_COOKIE_NAME,
        path="/",
        httponly=True,
        samesite="strict",
        secure=settings.is_production,
    )


def _user_response(user: AuthUserOutput) -> AuthUserResponse:
    return AuthUserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        has_password=user.has_password,
        google_linked=user.google_linked,
    )


def _session_response(response: Response, result: AuthSuccess) -> AuthSessionResponse:
    set_refresh_cookie(response, result.refresh_token)
    return AuthSessionResponse(
        user=_user_response(result.user),
        token=result.access_token,
        refresh_token=result.refresh_token,
        token_expires_at=result.access_expires_at,
        refresh_token_expires_at=result.refresh_expires_at,
    )


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def _failure_response(result: AuthFailure, *, requires_login: bool = False) -> JSONResponse:
    if requires_login:
        response = _error(FAILURE_STATUS[result.reason], result.message, requiresLogin=True)
        clear_refresh_cookie(response)
        return response
    return _error(FAILURE_STATUS[result.reason], result.message)


def register(
    req: RegisterRequest,
    response: Response,
    service: AuthenticationService = Depends(get_authentication_service),
):
    result = service.register(RegisterInput(name=req.name, email=req.email, password=req.password))
    if isinstance(result, AuthFailure):
        return _failure_response(result)
    return _session_response(response, result)


def login(
    req: LoginRequest,
    response: Response,
    service: AuthenticationService = Depends(get_authentication_service),
):
    result = service.login(LoginInput(email=req.email, password=req.password))
    if isinstance(result, AuthFailure):
        return _failure_response(result)
    return _session_response(response, result)


def refresh_token(
    response: Response,
    token: str | None = Depends(read_refresh_token),
    service: AuthenticationService = Depends(get_authentication_service),
):
    result = service.refresh_session(token)
    if isinstance(result, AuthFailure):
        return _failure_response(result, requires_login=True)
    return _session_response(response, result)


def logout(
    response: Response,
    token: str | None = Depends(read_refresh_token),
    service: AuthenticationService = Depends(get_authentication_service),
):
    result = service.logout(token)
    clear_refresh_cookie(response)
    return LogoutResponse(success=result.success, message=result.message)


def forgot_password(
    req: ForgotPasswordRequest,
    service: PasswordRecoveryService = Depends(get_password_recovery_service),
):
    result = service.forgot_password(req.email)
    if not result.success:
        status_code = 404 if result.error == "User not found" else 500
        return _error(status_code, result.error)
    return MessageResponse(message=result.message)


def reset_password(
    req: ResetPasswordRequest,
    service: PasswordRecoveryService = Depends(get_password_recovery_service),
):
    result = service.reset_password(token=req.token, password=req.password)
    if not result.success:
        status_code = 404 if result.error == "User not found" else 400
        return _error(status_code, result.error)
    return MessageResponse(message=result.message)


def google_redirect(
    platform: str = "web",
    resolver: ExternalIdentityResolver = Depends(get_external_identity_resolver),
):
    state = platform if platform in PLATFORMS else "web"
    url = resolver.authorization_url(
        redirect_uri=get_settings().google_callback_url,
        state=state,
    )
    return RedirectResponse(url=url, status_code=307)


def _web_redirect(params: dict) -> str:
    return f"{get_settings().client_url.rstrip('/')}/auth?{urlencode(params)}"


def _mobile_redirect(params: dict) -> str:
    return f"{get_settings().app_scheme}://auth?{urlencode(params)}"


def google_callback(
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    resolver: ExternalIdentityResolver = Depends(get_external_identity_resolver),
):
    is_mobile = state == "mobile"
    build_url = _mobile_redirect if is_mobile else _web_redirect

    if error or not code:
        logger.info("auth_router: google_callback_rejected error=%s", error)
        return RedirectResponse(url=build_url({"error": GOOGLE_AUTH_FAILED}), status_code=302)

    try:
        result = resolver.resolve_authorization_code(
            code=code,
            redirect_uri=get_settings().google_callback_url,
        )
    except Exception:  # noqa: BLE001
        logger.exception("auth_router: google_callback_failed")
        return RedirectResponse(url=build_url({"error": GOOGLE_AUTH_FAILED}), status_code=302)

    if is_mobile:
        url = build_url({"token": result.access_token, "refreshToken": result.refresh_token})
        return RedirectResponse(url=url, status_code=302)

    redirect = RedirectResponse(url=build_url({"token": result.access_token}), status_code=302)
    set_refresh_cookie(redirect, result.refresh_token)
    return redirect


def _resolve_external(resolve, response: Response):
    try:
        result = resolve()
    except IncompleteExternalProfileError as exc:
        return _error(400, str(exc))
    except ExternalProviderError as exc:
        return _error(401, str(exc))
    except Exception:  # noqa: BLE001
        logger.exception("auth_router: google_login_failed")
        return _error(500, "Failed to authenticate with Google")
    return _session_response(response, result)


def google_profile(
    req: GoogleProfileRequest,
    response: Response,
    resolver: ExternalIdentityResolver = Depends(get_external_identity_resolver),
):
    profile = GoogleProfileInput(google_id=req.google_id, email=req.email, name=req.name)
    return _resolve_external(lambda: resolver.resolve_profile(profile), response)


def google_id_token(
    req: GoogleIdTokenRequest,
    response: Response,
    resolver: ExternalIdentityResolver = Depends(get_external_identity_resolver),
):
    return _resolve_external(lambda: resolver.resolve_id_token(id_token=req.id_token), response)


def verify_token(session: GuardOutcome = Depends(require_session)):
    return VerifyTokenResponse(
        is_valid=True,
        user=_user_response(build_auth_user_output(session.user)),
    )
