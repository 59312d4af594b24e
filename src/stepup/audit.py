"""Audit sinks for two-factor lifecycle events.

Every transition and every failed code check is handed to an AuditSink as
``(owner_id, event, metadata)``. Sinks must not raise into the auth flow.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

from stepup.db import sync_execute
from stepup.models import AuditEvent

logger = logging.getLogger(__name__)


class AuditSink(Protocol):
    def record(self, owner_id: str, event: AuditEvent, metadata: dict[str, Any]) -> None: ...


class LoggingAuditSink:
    """Writes audit events to the ``stepup.audit`` logger."""

    def record(self, owner_id: str, event: AuditEvent, metadata: dict[str, Any]) -> None:
        logger.info("[audit] %s/%s: %s", owner_id, event, json.dumps(metadata, sort_keys=True))


class MemoryAuditSink:
    """Keeps events in a list; handy in tests and for batching."""

    def __init__(self) -> None:
        self.events: list[tuple[str, AuditEvent, dict[str, Any]]] = []

    def record(self, owner_id: str, event: AuditEvent, metadata: dict[str, Any]) -> None:
        self.events.append((owner_id, event, dict(metadata)))

    def names(self) -> list[AuditEvent]:
        return [event for _, event, _ in self.events]


class PostgresAuditSink:
    """Inserts audit events into the application's ``audit_log`` table."""

    def record(self, owner_id: str, event: AuditEvent, metadata: dict[str, Any]) -> None:
        try:
            sync_execute(
                """INSERT INTO audit_log
                   (user_id, action, resource_type, resource_id, metadata)
                   VALUES (%s, %s, %s, %s, %s)""",
                (owner_id, str(event), "User", owner_id, json.dumps(metadata)),
            )
            logger.info("[audit] %s/%s", owner_id, event)
        except Exception:
            logger.warning("Failed to record audit event: %s/%s", owner_id, event, exc_info=True)
