from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable
from urllib.parse import urlencode

from leasing_auth.application.dto.auth import RecoveryResult
from leasing_auth.application.ports.credential_store_port import CredentialStorePort
from leasing_auth.application.ports.mailer_port import MailerPort
from leasing_auth.application.ports.password_hasher_port import PasswordHasherPort
from leasing_auth.domain.commands import ChangePassword
from leasing_auth.domain.exceptions import InvalidPasswordResetTokenError, MailDeliveryError

from .auth_common import normalize_email, utcnow
from .token_service import TokenService


logger = logging.getLogger(__name__)


RESET_EMAIL_SUBJECT = "Password Reset Request"

RESET_EMAIL_TEMPLATE = """
<h1>Password Reset Request</h1>
<p>Click the link below to reset your password:</p>
<a href="{link}">{link}</a>
<p>This link will expire in {ttl_minutes} minutes.</p>
<p>If you didn't request this, please ignore this email.</p>
"""


class PasswordRecoveryService:
    def __init__(
        self,
        *,
        credential_store: CredentialStorePort,
        token_service: TokenService,
        password_hasher: PasswordHasherPort,
        mailer: MailerPort,
        client_url: str,
        reset_ttl_minutes: int = 60,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._credential_store = credential_store
        self._token_service = token_service
        self._password_hasher = password_hasher
        self._mailer = mailer
        self._client_url = client_url.rstrip("/")
        self._reset_ttl_minutes = reset_ttl_minutes
        self._clock = clock

    def build_reset_link(self, token: str) -> str:
        return f"{self._client_url}/reset-password?{urlencode({'token': token})}"

    def forgot_password(self, email: str) -> RecoveryResult:
        user = self._credential_store.get_by_email(email=normalize_email(email))
        if user is None:
            return RecoveryResult(success=False, error="User not found")

        token = self._token_service.issue_password_reset_token(user.id)
        link = self.build_reset_link(token)
        try:
            self._mailer.send(
                to=user.email,
                subject=RESET_EMAIL_SUBJECT,
                html=RESET_EMAIL_TEMPLATE.format(link=link, ttl_minutes=self._reset_ttl_minutes),
            )
        except MailDeliveryError:
            logger.exception("password_recovery: send_failed user_id=%s", user.id)
            return RecoveryResult(success=False, error="Failed to send recovery email")

        logger.info("password_recovery: reset_link_sent user_id=%s", user.id)
        return RecoveryResult(success=True, message="Recovery email sent successfully")

    def reset_password(self, *, token: str, password: str) -> RecoveryResult:
        try:
            user_id = self._token_service.verify_password_reset_token(token)
        except InvalidPasswordResetTokenError as exc:
            return RecoveryResult(success=False, error=str(exc))

        user = self._credential_store.apply(
            ChangePassword(user_id=user_id, password_hash=self._password_hasher.hash(password)),
            now=self._clock(),
        )
        if user is None:
            return RecoveryResult(success=False, error="User not found")

        # Force re-login everywhere.
        self._token_service.revoke_all_for_user(user.id)
        logger.info("password_recovery: password_reset user_id=%s", user.id)
        return RecoveryResult(success=True, message="Password updated successfully")
