"""Pydantic models for data flowing through the two-factor engine."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field

from stepup.errors import DecryptionFailed


# === Enums ===


class EnrollmentState(StrEnum):
    DISABLED = "disabled"
    PENDING_SETUP = "pending_setup"
    ENABLED = "enabled"


class SensitiveAction(StrEnum):
    LOGIN = "login"
    CONTRIBUTE = "contribute"
    WITHDRAW = "withdraw"
    SETTINGS = "settings"


class AuditEvent(StrEnum):
    SETUP_STARTED = "TWO_FA_SETUP_STARTED"
    ENABLED = "TWO_FA_ENABLED"
    ENABLE_FAILED = "TWO_FA_ENABLE_FAILED"
    VALIDATED = "TWO_FA_VALIDATED"
    VALIDATION_FAILED = "TWO_FA_VALIDATION_FAILED"
    DISABLED = "TWO_FA_DISABLED"
    DISABLE_FAILED = "TWO_FA_DISABLE_FAILED"
    DECRYPTION_FAILED = "TWO_FA_DECRYPTION_FAILED"
    BACKUP_CODE_USED = "TWO_FA_BACKUP_CODE_USED"
    BACKUP_CODE_FAILED = "TWO_FA_BACKUP_CODE_FAILED"


# === Secrets ===


class SealedSecret(BaseModel):
    """At-rest form of a TOTP secret: AES-GCM nonce, tag and ciphertext."""

    model_config = {"frozen": True}

    nonce: bytes
    tag: bytes
    ciphertext: bytes

    def serialize(self) -> str:
        """Render as ``nonce:tag:ciphertext`` with each part hex-encoded."""
        return f"{self.nonce.hex()}:{self.tag.hex()}:{self.ciphertext.hex()}"

    @classmethod
    def parse(cls, text: str) -> SealedSecret:
        parts = text.split(":")
        if len(parts) != 3 or not all(parts):
            raise DecryptionFailed("Invalid sealed secret format")
        try:
            nonce, tag, ciphertext = (bytes.fromhex(p) for p in parts)
        except ValueError as e:
            raise DecryptionFailed("Invalid sealed secret format") from e
        return cls(nonce=nonce, tag=tag, ciphertext=ciphertext)


class PendingEnrollment(BaseModel):
    """An unconfirmed secret staged between begin and confirm.

    ``secret`` is the base32 form of the raw secret; ``sealed`` is the
    serialized SealedSecret that gets copied onto the user record on confirm.
    """

    owner_id: str
    secret: str
    sealed: str
    created_at: float


# === Results ===


class ActionClaims(BaseModel):
    """Verified contents of an action token."""

    owner_id: str = Field(alias="userId")
    action: str
    exp: int
    jti: str

    model_config = {"populate_by_name": True}


class SetupResult(BaseModel):
    secret: str
    uri: str
    expires_in: int


class ConfirmResult(BaseModel):
    enabled: bool = True
    backup_codes: list[str]


class ActionGrant(BaseModel):
    """An issued action token and its lifetime in seconds."""

    action: str
    token: str
    expires_in: int
