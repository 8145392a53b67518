from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=6, max_length=256)


class LoginRequest(CamelModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=256)


class ForgotPasswordRequest(CamelModel):
    email: str = Field(..., min_length=3, max_length=255)


class ResetPasswordRequest(CamelModel):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=6, max_length=256)


class GoogleProfileRequest(CamelModel):
    google_id: str = Field(..., min_length=1)
    email: str | None = None
    name: str | None = None


class GoogleIdTokenRequest(CamelModel):
    id_token: str = Field(..., min_length=1)


class UpdateProfileRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=120)


class AuthUserResponse(CamelModel):
    id: str
    name: str
    email: str
    has_password: bool
    google_linked: bool


class AuthSessionResponse(CamelModel):
    user: AuthUserResponse
    token: str
    refresh_token: str
    token_expires_at: datetime
    refresh_token_expires_at: datetime


class LogoutResponse(CamelModel):
    success: bool
    message: str


class MessageResponse(CamelModel):
    message: str


class VerifyTokenResponse(CamelModel):
    is_valid: bool
    user: AuthUserResponse
