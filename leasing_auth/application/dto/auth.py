from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Union


@dataclass(frozen=True)
class AuthUserOutput:
    id: str
    name: str
    email: str
    has_password: bool
    google_linked: bool


@dataclass(frozen=True)
class RegisterInput:
    name: str
    email: str
    password: str


@dataclass(frozen=True)
class LoginInput:
    email: str
    password: str


@dataclass(frozen=True)
class GoogleProfileInput:
    google_id: str
    email: str | None
    name: str | None
    email_verified: bool | None = None


@dataclass(frozen=True)
class AccessTokenPayload:
    user_id: str
    expires_at: datetime


@dataclass(frozen=True)
class IssuedRefreshToken:
    token: str
    expires_at: datetime


class FailureReason(str, Enum):
    DUPLICATE_EMAIL = "DuplicateEmail"
    INVALID_CREDENTIALS = "InvalidCredentials"
    EXTERNAL_AUTH_REQUIRED = "ExternalAuthRequired"
    MISSING_TOKEN = "MissingToken"
    INVALID_OR_EXPIRED_TOKEN = "InvalidOrExpiredToken"
    USER_NOT_FOUND = "UserNotFound"
    INTERNAL_ERROR = "InternalError"


FAILURE_MESSAGES = {
    FailureReason.DUPLICATE_EMAIL: "User already exists",
    FailureReason.INVALID_CREDENTIALS: "Invalid credentials",
    FailureReason.EXTERNAL_AUTH_REQUIRED: (
        "This account uses Google authentication. Please sign in with Google."
    ),
    FailureReason.MISSING_TOKEN: "Refresh token is required",
    FailureReason.INVALID_OR_EXPIRED_TOKEN: "Invalid or expired refresh token",
    FailureReason.USER_NOT_FOUND: "User not found",
    FailureReason.INTERNAL_ERROR: "Authentication failed",
}


@dataclass(frozen=True)
class AuthSuccess:
    user: AuthUserOutput
    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime

    ok = True


@dataclass(frozen=True)
class AuthFailure:
    reason: FailureReason

    ok = False

    @property
    def message(self) -> str:
        return FAILURE_MESSAGES[self.reason]


AuthResult = Union[AuthSuccess, AuthFailure]


@dataclass(frozen=True)
class LogoutResult:
    success: bool
    message: str


@dataclass(frozen=True)
class RecoveryResult:
    success: bool
    message: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class ExternalIdentityInfo:
    subject: str
    email: str | None
    name: str | None
    email_verified: bool | None
