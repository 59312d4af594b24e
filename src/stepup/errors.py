"""Exception taxonomy for the two-factor engine.

Every error carries a stable reason ``code`` and the HTTP ``status`` a web
layer would typically map it to. Messages never contain secrets or codes.
"""

from __future__ import annotations


class TwoFactorError(Exception):
    code = "TWO_FA_ERROR"
    status = 400
    fatal = False
    default_message = "Two-factor authentication error."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class AlreadyEnabled(TwoFactorError):
    code = "TWO_FA_ALREADY_ENABLED"
    status = 409
    default_message = "Two-factor authentication is already enabled. Disable it first to reconfigure."


class NotEnabled(TwoFactorError):
    code = "TWO_FA_NOT_ENABLED"
    status = 400
    default_message = "Two-factor authentication is not enabled for this account."


class NoPendingSetup(TwoFactorError):
    code = "NO_PENDING_SETUP"
    status = 400
    default_message = "No pending 2FA setup found. Please start the setup process first."


class InvalidCode(TwoFactorError):
    code = "INVALID_CODE"
    status = 401
    default_message = "Invalid verification code."


class DecryptionFailed(TwoFactorError):
    """The stored secret could not be unsealed (wrong key or corrupted record)."""

    code = "DECRYPTION_FAILED"
    status = 500
    fatal = True
    default_message = "Failed to decrypt 2FA secret. Please contact support."


class UserNotFound(TwoFactorError):
    code = "USER_NOT_FOUND"
    status = 404
    default_message = "User not found."


class InvalidToken(TwoFactorError):
    code = "INVALID_TOKEN"
    status = 401
    default_message = "Invalid action token."


class InvalidTokenFormat(InvalidToken):
    code = "INVALID_TOKEN_FORMAT"
    default_message = "Malformed action token."


class InvalidTokenSignature(InvalidTokenFormat):
    code = "INVALID_TOKEN_SIGNATURE"
    default_message = "Action token signature mismatch."


class TokenExpired(InvalidToken):
    code = "TOKEN_EXPIRED"
    default_message = "Action token has expired."


class ActionMismatch(InvalidToken):
    code = "ACTION_MISMATCH"
    status = 403
    default_message = "Action token was issued for a different action."


class InvalidAction(TwoFactorError):
    code = "INVALID_ACTION"
    status = 400
    default_message = "Action must be one of: login, contribute, withdraw, settings."
