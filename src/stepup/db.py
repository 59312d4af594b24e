"""Database helpers and PostgreSQL adapters for the engine's collaborators.

Tables used (owned by the surrounding application's migrations):

    platform_config(key text primary key, value text, description text, updated_at timestamptz)
    users(id text primary key, two_factor_enabled bool, two_factor_secret text, updated_at timestamptz,
          two_factor_backup_codes jsonb)
    audit_log(id serial, user_id text, action text, resource_type text,
              resource_id text, metadata jsonb, created_at timestamptz)
"""

from __future__ import annotations

import json
from typing import Any

import psycopg
import psycopg.rows

from stepup.config import settings
from stepup.errors import UserNotFound
from stepup.models import EnrollmentState


def sync_conn() -> psycopg.Connection[dict[str, Any]]:
    """Open a synchronous connection using project settings."""
    return psycopg.connect(settings.database_url, row_factory=psycopg.rows.dict_row)


def sync_execute(query: str, params: tuple[Any, ...] | None = None) -> list[dict[str, Any]]:
    """Execute query synchronously, opening and closing a connection per call."""
    with sync_conn() as conn:
        with conn.cursor() as cur:
            cur.execute(query, params)
            conn.commit()
            if cur.description is None:
                return []
            return cur.fetchall()


def sync_execute_one(query: str, params: tuple[Any, ...] | None = None) -> dict[str, Any] | None:
    """Execute query synchronously and return one row."""
    with sync_conn() as conn:
        with conn.cursor() as cur:
            cur.execute(query, params)
            conn.commit()
            if cur.description is None:
                return None
            return cur.fetchone()


# ---------------------------------------------------------------------------
# Staging store (platform_config key/value table)
# ---------------------------------------------------------------------------


class PostgresStagingStore:
    """StagingStore over ``platform_config``; every method is one statement."""

    def __init__(self, description: str = "Pending 2FA TOTP secret") -> None:
        self.description = description

    def upsert(self, key: str, value: str) -> None:
        sync_execute(
            """INSERT INTO platform_config (key, value, description, updated_at)
               VALUES (%s, %s, %s, now())
               ON CONFLICT (key) DO UPDATE
               SET value = EXCLUDED.value, updated_at = now()""",
            (key, value, self.description),
        )

    def get(self, key: str) -> str | None:
        row = sync_execute_one("SELECT value FROM platform_config WHERE key = %s", (key,))
        return row["value"] if row else None

    def delete(self, key: str) -> None:
        sync_execute("DELETE FROM platform_config WHERE key = %s", (key,))

    def delete_if(self, key: str, expected: str) -> bool:
        rows = sync_execute(
            "DELETE FROM platform_config WHERE key = %s AND value = %s RETURNING key",
            (key, expected),
        )
        return bool(rows)

    def list_keys_with_prefix(self, prefix: str) -> list[str]:
        pattern = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"
        rows = sync_execute("SELECT key FROM platform_config WHERE key LIKE %s", (pattern,))
        return [row["key"] for row in rows]


# ---------------------------------------------------------------------------
# User record
# ---------------------------------------------------------------------------


class PostgresUserRepository:
    """UserRepository over the application's ``users`` table."""

    def _row(self, owner_id: str, columns: str) -> dict[str, Any]:
        row = sync_execute_one(f"SELECT {columns} FROM users WHERE id = %s", (owner_id,))
        if row is None:
            raise UserNotFound()
        return row

    def _update(self, owner_id: str, assignment: str, value: Any) -> None:
        rows = sync_execute(
            f"UPDATE users SET {assignment} = %s, updated_at = now() WHERE id = %s RETURNING id",
            (value, owner_id),
        )
        if not rows:
            raise UserNotFound()

    def get_enrollment_state(self, owner_id: str) -> EnrollmentState:
        row = self._row(owner_id, "two_factor_enabled")
        return EnrollmentState.ENABLED if row["two_factor_enabled"] else EnrollmentState.DISABLED

    def get_sealed_secret(self, owner_id: str) -> str | None:
        return self._row(owner_id, "two_factor_secret")["two_factor_secret"]

    def set_sealed_secret(self, owner_id: str, sealed: str | None) -> None:
        self._update(owner_id, "two_factor_secret", sealed)

    def set_enrollment_flag(self, owner_id: str, enabled: bool) -> None:
        self._update(owner_id, "two_factor_enabled", enabled)

    def get_backup_code_hashes(self, owner_id: str) -> list[str]:
        raw = self._row(owner_id, "two_factor_backup_codes")["two_factor_backup_codes"]
        if raw is None:
            return []
        return json.loads(raw) if isinstance(raw, str) else list(raw)

    def set_backup_code_hashes(self, owner_id: str, hashes: list[str]) -> None:
        self._update(owner_id, "two_factor_backup_codes", json.dumps(hashes))
