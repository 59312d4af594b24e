"""Short-lived, HMAC-signed capability tokens for re-authenticated actions.

A token is ``base64url(json payload) + "." + base64url(HMAC-SHA256)``. It is
self-contained: verification needs only the signing secret and the clock.
There is no revocation; callers that need it can denylist ``jti``.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
import time
import uuid
from collections.abc import Callable

from pydantic import ValidationError

from stepup.config import settings
from stepup.errors import ActionMismatch, InvalidTokenFormat, InvalidTokenSignature, TokenExpired
from stepup.models import ActionClaims

logger = logging.getLogger(__name__)


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


class ActionTokenIssuer:
    """Issues and verifies action tokens with a server-side signing secret."""

    def __init__(
        self,
        secret: str | None = None,
        *,
        ttl: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._secret = secret
        self.ttl = settings.action_token_ttl_seconds if ttl is None else ttl
        self._clock = clock

    def _key(self) -> bytes:
        secret = self._secret or settings.stepup_action_token_secret
        if not secret:
            raise RuntimeError("STEPUP_ACTION_TOKEN_SECRET not set")
        return secret.encode()

    def _sign(self, encoded: str) -> str:
        return _b64encode(hmac.new(self._key(), encoded.encode("ascii"), hashlib.sha256).digest())

    def issue(self, owner_id: str, action: str, ttl: int | None = None) -> str:
        """Issue a token proving ``owner_id`` just re-authenticated for ``action``."""
        if not action:
            raise ValueError("action must be non-empty")
        lifetime = self.ttl if ttl is None else ttl
        payload = {
            "userId": owner_id,
            "action": str(action),
            "exp": int((self._clock() + lifetime) * 1000),
            "jti": str(uuid.uuid4()),
        }
        encoded = _b64encode(json.dumps(payload, separators=(",", ":")).encode())
        return f"{encoded}.{self._sign(encoded)}"

    def verify(self, token: str, action: str | None = None) -> ActionClaims:
        """Verify signature and expiry, returning the token's claims."""
        parts = token.split(".") if isinstance(token, str) else []
        if len(parts) != 2 or not all(parts):
            raise InvalidTokenFormat()
        encoded, signature = parts
        try:
            expected = self._sign(encoded)
        except UnicodeEncodeError as e:
            raise InvalidTokenFormat() from e
        if not hmac.compare_digest(signature.encode(), expected.encode()):
            raise InvalidTokenSignature()

        try:
            claims = ActionClaims.model_validate(json.loads(_b64decode(encoded)))
        except (binascii.Error, ValueError, ValidationError) as e:
            raise InvalidTokenFormat() from e

        if claims.exp < self._clock() * 1000:
            raise TokenExpired()
        if action is not None and claims.action != action:
            logger.info("Action token for %s presented for %s", claims.action, action)
            raise ActionMismatch()
        return claims
