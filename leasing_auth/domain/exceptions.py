from __future__ import annotations

from enum import Enum


class DomainError(Exception):
    """Base for domain errors."""


class InvalidAccessTokenError(DomainError):
    """Access token has a bad signature, is expired, or has the wrong type."""


class InvalidPasswordResetTokenError(DomainError):
    """Password reset token is malformed, expired, or not a reset token."""


class ExternalProviderError(DomainError):
    """The external identity provider failed or rejected the grant."""


class IncompleteExternalProfileError(DomainError):
    """The external profile is missing a claim required to resolve an identity."""


class DuplicateIdentityError(DomainError):
    """A user with the same email or Google id already exists."""


class MailDeliveryError(DomainError):
    """Outgoing mail could not be delivered."""


class UnauthorizedReason(str, Enum):
    NO_TOKEN = "NoToken"
    SESSION_EXPIRED = "SessionExpired"
    INTERNAL_ERROR = "InternalError"


class UnauthorizedError(DomainError):
    """Request did not pass the session guard."""

    MESSAGES = {
        UnauthorizedReason.NO_TOKEN: "No token provided",
        UnauthorizedReason.SESSION_EXPIRED: "Session expired, please login again",
        UnauthorizedReason.INTERNAL_ERROR: "Authentication failed",
    }

    def __init__(self, reason: UnauthorizedReason):
        self.reason = reason
        super().__init__(self.MESSAGES[reason])
