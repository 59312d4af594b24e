"""Two-factor enrolment lifecycle: Disabled -> PendingSetup -> Enabled -> Disabled.

``TwoFactorService`` orchestrates the primitives against the caller's user
record, staging store and audit sink. Each public method either completes
its transition or raises a ``TwoFactorError`` leaving state unchanged.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from stepup import crypto
from stepup.audit import AuditSink
from stepup.auth import backup_codes, totp
from stepup.auth.action_tokens import ActionTokenIssuer
from stepup.config import Settings
from stepup.config import settings as default_settings
from stepup.errors import (
    AlreadyEnabled,
    DecryptionFailed,
    InvalidAction,
    InvalidCode,
    NoPendingSetup,
    NotEnabled,
)
from stepup.models import ActionGrant, AuditEvent, ConfirmResult, EnrollmentState, SensitiveAction, SetupResult
from stepup.pending import PendingEnrollmentStore
from stepup.store import StagingStore, UserRepository

logger = logging.getLogger(__name__)


class TwoFactorService:
    def __init__(
        self,
        users: UserRepository,
        staging: StagingStore,
        audit: AuditSink,
        *,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings or default_settings
        self.users = users
        self.audit = audit
        self._clock = clock
        master = self.settings.stepup_master_key
        self._key = crypto.derive_key(master) if master else None
        self.pending = PendingEnrollmentStore(
            staging, ttl=self.settings.pending_ttl_seconds, clock=clock, key=self._key
        )
        self.tokens = ActionTokenIssuer(
            self.settings.stepup_action_token_secret or None,
            ttl=self.settings.action_token_ttl_seconds,
            clock=clock,
        )

    # -- helpers -----------------------------------------------------------

    def _record(self, owner_id: str, event: AuditEvent, **metadata: Any) -> None:
        metadata["timestamp"] = datetime.fromtimestamp(self._clock(), timezone.utc).isoformat()
        self.audit.record(owner_id, event, metadata)

    def _verify(self, secret: str, code: str) -> bool:
        return totp.verify(
            secret,
            code,
            window=self.settings.totp_window,
            time_step=self.settings.totp_period,
            at=self._clock(),
        )

    def _enabled_secret(self, owner_id: str) -> str:
        """Return the stored sealed secret, or raise NotEnabled."""
        if self.users.get_enrollment_state(owner_id) != EnrollmentState.ENABLED:
            raise NotEnabled()
        sealed = self.users.get_sealed_secret(owner_id)
        if not sealed:
            raise NotEnabled()
        return sealed

    def _unseal(self, owner_id: str, sealed: str, attempted: str) -> str:
        try:
            return crypto.unseal(sealed, self._key)
        except DecryptionFailed:
            logger.error("Stored 2FA secret for %s could not be decrypted (%s)", owner_id, attempted)
            self._record(owner_id, AuditEvent.DECRYPTION_FAILED, reason=DecryptionFailed.code, attempted=attempted)
            raise

    @staticmethod
    def _action(action: str) -> SensitiveAction:
        try:
            return SensitiveAction(action)
        except ValueError:
            raise InvalidAction() from None

    def _grant(self, owner_id: str, action: str) -> ActionGrant:
        return ActionGrant(
            action=str(action),
            token=self.tokens.issue(owner_id, action),
            expires_in=self.tokens.ttl,
        )

    # -- state ---------------------------------------------------------------

    def state(self, owner_id: str) -> EnrollmentState:
        current = self.users.get_enrollment_state(owner_id)
        if current == EnrollmentState.ENABLED:
            return current
        if self.pending.get(owner_id) is not None:
            return EnrollmentState.PENDING_SETUP
        return EnrollmentState.DISABLED

    # -- transitions -----------------------------------------------------------

    def begin_setup(self, owner_id: str, account: str | None = None) -> SetupResult:
        """Stage a new secret and return it with its provisioning URI."""
        if self.users.get_enrollment_state(owner_id) == EnrollmentState.ENABLED:
            raise AlreadyEnabled()
        entry = self.pending.begin(owner_id)
        uri = totp.provisioning_uri(
            entry.secret,
            account or owner_id,
            issuer=self.settings.totp_issuer,
            time_step=self.settings.totp_period,
        )
        self._record(owner_id, AuditEvent.SETUP_STARTED)
        return SetupResult(secret=entry.secret, uri=uri, expires_in=self.pending.ttl)

    def confirm_setup(self, owner_id: str, code: str) -> ConfirmResult:
        """Prove possession of the pending secret and enable 2FA.

        The plaintext backup codes in the result are never available again.
        """
        if self.users.get_enrollment_state(owner_id) == EnrollmentState.ENABLED:
            raise AlreadyEnabled()
        entry = self.pending.get(owner_id)
        if entry is None:
            raise NoPendingSetup()

        if not self._verify(entry.secret, code):
            self._record(owner_id, AuditEvent.ENABLE_FAILED, reason=InvalidCode.code)
            raise InvalidCode("Invalid verification code. Please check and try again.")

        codes = backup_codes.generate(self.settings.backup_code_count)
        self.users.set_sealed_secret(owner_id, entry.sealed)
        self.users.set_backup_code_hashes(owner_id, [backup_codes.hash_code(c) for c in codes])
        self.users.set_enrollment_flag(owner_id, True)
        self.pending.consume(owner_id)

        self._record(owner_id, AuditEvent.ENABLED, backupCodesGenerated=len(codes))
        logger.info("2FA enabled for %s", owner_id)
        return ConfirmResult(backup_codes=codes)

    def validate_for_action(self, owner_id: str, code: str, action: str) -> ActionGrant:
        """Step-up check: verify ``code`` and issue a token scoped to ``action``."""
        action = self._action(action)
        sealed = self._enabled_secret(owner_id)
        secret = self._unseal(owner_id, sealed, "validate")

        if not self._verify(secret, code):
            self._record(owner_id, AuditEvent.VALIDATION_FAILED, reason=InvalidCode.code, action=str(action))
            raise InvalidCode()

        grant = self._grant(owner_id, action)
        self._record(owner_id, AuditEvent.VALIDATED, action=str(action))
        return grant

    def disable(self, owner_id: str, code: str) -> None:
        """Turn 2FA off after proving possession of the current secret."""
        sealed = self._enabled_secret(owner_id)
        secret = self._unseal(owner_id, sealed, "disable")

        if not self._verify(secret, code):
            self._record(owner_id, AuditEvent.DISABLE_FAILED, reason=InvalidCode.code)
            raise InvalidCode("Invalid verification code. 2FA was not disabled.")

        self.users.set_enrollment_flag(owner_id, False)
        self.users.set_sealed_secret(owner_id, None)
        self.users.set_backup_code_hashes(owner_id, [])
        self._record(owner_id, AuditEvent.DISABLED)
        logger.info("2FA disabled for %s", owner_id)

    def redeem_backup_code(self, owner_id: str, code: str, action: str) -> ActionGrant:
        """Use a single backup code in place of a TOTP code."""
        action = self._action(action)
        if self.users.get_enrollment_state(owner_id) != EnrollmentState.ENABLED:
            raise NotEnabled()
        hashes = self.users.get_backup_code_hashes(owner_id)
        matched = backup_codes.match(code, hashes)
        if matched is None:
            self._record(owner_id, AuditEvent.BACKUP_CODE_FAILED, reason=InvalidCode.code, action=str(action))
            raise InvalidCode()

        hashes.remove(matched)
        self.users.set_backup_code_hashes(owner_id, hashes)
        grant = self._grant(owner_id, action)
        self._record(owner_id, AuditEvent.BACKUP_CODE_USED, action=str(action), remaining=len(hashes))
        return grant
