"""Smoke tests for the operator CLI."""

from __future__ import annotations

import base64

from click.testing import CliRunner

from stepup.auth import totp
from stepup.auth.action_tokens import ActionTokenIssuer
from stepup.cli import main
from stepup.config import Settings


def test_status():
    result = CliRunner().invoke(main, ["status"])
    assert result.exit_code == 0
    assert "Master key" in result.output


def test_keygen():
    result = CliRunner().invoke(main, ["keygen"])
    assert result.exit_code == 0
    assert len(base64.b64decode(result.output.strip())) == 32


def test_code_and_verify():
    secret = totp.generate_secret()
    result = CliRunner().invoke(main, ["code", secret])
    assert result.exit_code == 0
    current = result.output.strip()
    assert totp.verify(secret, current)

    assert CliRunner().invoke(main, ["verify", secret, current]).exit_code == 0
    assert CliRunner().invoke(main, ["verify", secret, "abc"]).exit_code == 1


def test_uri():
    secret = totp.generate_secret()
    result = CliRunner().invoke(main, ["uri", secret, "alice"])
    assert result.exit_code == 0
    assert result.output.strip().startswith("otpauth://totp/")
    assert f"secret={secret}" in result.output


def test_backup_codes():
    result = CliRunner().invoke(main, ["backup-codes", "--count", "3", "--hashes"])
    assert result.exit_code == 0
    assert "sha256" in result.output


def test_inspect_token(monkeypatch):
    monkeypatch.setattr(
        "stepup.auth.action_tokens.settings",
        Settings(_env_file=None, stepup_action_token_secret="cli-secret"),
    )
    token = ActionTokenIssuer().issue("u1", "withdraw")

    ok = CliRunner().invoke(main, ["inspect-token", token, "--action", "withdraw"])
    assert ok.exit_code == 0
    assert '"userId": "u1"' in ok.output

    bad = CliRunner().invoke(main, ["inspect-token", "garbage"])
    assert bad.exit_code == 1
    assert "INVALID_TOKEN_FORMAT" in bad.output
