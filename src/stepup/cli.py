"""CLI entry point for stepup operator tooling."""

from __future__ import annotations

import base64
import json
import logging
import secrets

import click
from rich.console import Console
from rich.table import Table

console = Console()


def _mask(value: str) -> str:
    return "[green]set[/green]" if value else "[red]not set[/red]"


@click.group()
def main() -> None:
    """stepup: step-up (two-factor) authentication engine."""
    from stepup.config import settings

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command()
def status() -> None:
    """Show configuration (secrets masked)."""
    from stepup.config import settings

    console.print("[bold]stepup configuration[/bold]")
    console.print(f"  Database: {settings.database_url.split('@')[-1]}")
    console.print(f"  Master key: {_mask(settings.stepup_master_key)}")
    console.print(f"  Action token secret: {_mask(settings.stepup_action_token_secret)}")
    console.print(f"  Issuer: {settings.totp_issuer}")
    console.print(f"  TOTP: period {settings.totp_period}s, window ±{settings.totp_window}")
    console.print(f"  Pending TTL: {settings.pending_ttl_seconds}s")
    console.print(f"  Action token TTL: {settings.action_token_ttl_seconds}s")


@main.command()
def keygen() -> None:
    """Print a fresh random value suitable for STEPUP_MASTER_KEY."""
    click.echo(base64.b64encode(secrets.token_bytes(32)).decode())


@main.command()
@click.argument("secret")
def code(secret: str) -> None:
    """Show the current TOTP code for a base32 SECRET."""
    from stepup.auth import totp
    from stepup.config import settings

    click.echo(totp.totp(secret, time_step=settings.totp_period))


@main.command()
@click.argument("secret")
@click.argument("candidate")
def verify(secret: str, candidate: str) -> None:
    """Check CANDIDATE against a base32 SECRET."""
    from stepup.auth import totp
    from stepup.config import settings

    ok = totp.verify(secret, candidate, window=settings.totp_window, time_step=settings.totp_period)
    if ok:
        console.print("[green]valid[/green]")
    else:
        console.print("[red]invalid[/red]")
        raise SystemExit(1)


@main.command()
@click.argument("secret")
@click.argument("account")
def uri(secret: str, account: str) -> None:
    """Print the otpauth:// provisioning URI for SECRET and ACCOUNT."""
    from stepup.auth import totp
    from stepup.config import settings

    click.echo(totp.provisioning_uri(secret, account, issuer=settings.totp_issuer, time_step=settings.totp_period))


@main.command("backup-codes")
@click.option("--count", default=8, show_default=True, help="Number of codes to generate.")
@click.option("--hashes", is_flag=True, help="Also print the storage hash of each code.")
def backup_codes_cmd(count: int, hashes: bool) -> None:
    """Generate a batch of backup codes."""
    from stepup.auth import backup_codes

    table = Table("code", *(["sha256"] if hashes else []))
    for c in backup_codes.generate(count):
        table.add_row(c, *([backup_codes.hash_code(c)] if hashes else []))
    console.print(table)


@main.command("inspect-token")
@click.argument("token")
@click.option("--action", default=None, help="Require the token to be scoped to this action.")
def inspect_token(token: str, action: str | None) -> None:
    """Verify an action TOKEN and show its claims."""
    from stepup.auth.action_tokens import ActionTokenIssuer
    from stepup.errors import InvalidToken

    try:
        claims = ActionTokenIssuer().verify(token, action=action)
    except InvalidToken as e:
        console.print(f"[red]{e.code}[/red]: {e}")
        raise SystemExit(1) from None
    console.print_json(json.dumps(claims.model_dump(by_alias=True)))


@main.command()
def db_check() -> None:
    """Verify database connectivity."""
    from stepup.db import sync_execute_one

    row = sync_execute_one("SELECT 1 AS ok")
    if row and row["ok"] == 1:
        console.print("[green]Database connection OK[/green]")
    else:
        console.print("[red]Database check failed[/red]")


@main.command()
def sweep() -> None:
    """Delete expired pending enrolments from the database."""
    from stepup.config import settings
    from stepup.db import PostgresStagingStore
    from stepup.pending import PendingEnrollmentStore

    store = PendingEnrollmentStore(PostgresStagingStore(), ttl=settings.pending_ttl_seconds)
    removed = store.sweep()
    console.print(f"Removed {removed} expired pending enrolment(s)")


if __name__ == "__main__":
    main()
