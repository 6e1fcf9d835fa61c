"""Credential management commands."""

import click

from ledgersync.cli.error_handling import handle_domain_error
from ledgersync.domain.credentials import ALL_VENDORS, CredentialService


@click.group()
def credential_group():
    """Manage vendor credentials."""
    pass


@credential_group.command("add")
@click.argument("vendor", type=click.Choice(sorted(ALL_VENDORS)))
@click.option("--nickname", help="Display name for this credential")
@click.option("--username", help="Username (most vendors)")
@click.option("--user-code", help="User code (hapoalim)")
@click.option("--id-number", help="National ID number (isracard, amex)")
@click.option("--card6-digits", help="Last six card digits (isracard, amex)")
@click.option("--password", prompt=True, hide_input=True, help="Password (prompted if omitted)")
@click.pass_context
def add_credential(
    ctx,
    vendor: str,
    nickname: str | None,
    username: str | None,
    user_code: str | None,
    id_number: str | None,
    card6_digits: str | None,
    password: str,
):
    """Register a credential for a vendor.

    Examples:
        ledgersync credential add max --username jdoe --nickname "Max card"
        ledgersync credential add hapoalim --user-code AB1234
        ledgersync credential add isracard --id-number 123456789 --card6-digits 123456
    """
    service = CredentialService(ctx.obj["db"])
    secrets = {
        "username": username,
        "user_code": user_code,
        "id_number": id_number,
        "card6_digits": card6_digits,
        "password": password,
    }
    try:
        credential_id = service.create_credential(
            vendor, {k: v for k, v in secrets.items() if v is not None}, nickname=nickname
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Created credential for '{vendor}' (ID: {credential_id})")


@credential_group.command("list")
@click.option("--active-only", is_flag=True, help="Hide deactivated credentials")
@click.pass_context
def list_credentials(ctx, active_only: bool):
    """List credentials, least recently synced first."""
    service = CredentialService(ctx.obj["db"])
    credentials = service.list_credentials(active_only=active_only)
    if not credentials:
        click.echo("No credentials found.")
        return

    click.echo("\nCredentials:")
    click.echo("-" * 72)
    for cred in credentials:
        synced = cred.last_synced_at.strftime("%Y-%m-%d %H:%M") if cred.last_synced_at else "never"
        state = "active" if cred.is_active else "inactive"
        click.echo(
            f"ID: {cred.id:3d} | {cred.vendor:12s} | {(cred.nickname or '-'):20s} | "
            f"{state:8s} | last sync: {synced}"
        )


@credential_group.command("deactivate")
@click.argument("credential_id", type=int)
@click.pass_context
def deactivate_credential(ctx, credential_id: int):
    """Deactivate a credential. Its transactions and card claims are kept."""
    service = CredentialService(ctx.obj["db"])
    try:
        service.deactivate_credential(credential_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Deactivated credential {credential_id}")


@credential_group.command("activate")
@click.argument("credential_id", type=int)
@click.pass_context
def activate_credential(ctx, credential_id: int):
    """Re-activate a credential."""
    service = CredentialService(ctx.obj["db"])
    try:
        service.activate_credential(credential_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Activated credential {credential_id}")


def register_commands(cli):
    """Register credential commands with main CLI."""
    cli.add_command(credential_group, name="credential")
