"""Card ownership commands."""

import click

from ledgersync.cli.error_handling import handle_domain_error
from ledgersync.domain.credentials import CredentialService
from ledgersync.domain.ownership import OwnershipResolver


@click.group()
def ownership_group():
    """Inspect and claim card ownership."""
    pass


@ownership_group.command("list")
@click.option("--credential", "credential_id", type=int, help="Only accounts owned by this credential")
@click.pass_context
def list_ownerships(ctx, credential_id: int | None):
    """List which credential owns each account."""
    resolver = OwnershipResolver(ctx.obj["db"])
    ownerships = resolver.list_ownerships(credential_id=credential_id)
    if not ownerships:
        click.echo("No card ownership claims found.")
        return

    click.echo("\nCard ownership:")
    click.echo("-" * 72)
    for own in ownerships:
        balance = f"{own.balance:,.2f}" if own.balance is not None else "-"
        click.echo(
            f"{own.vendor:12s} | {own.account_number:12s} | credential {own.credential_id:3d} | "
            f"balance: {balance}"
        )


@ownership_group.command("claim")
@click.argument("vendor")
@click.argument("account_number")
@click.argument("credential_id", type=int)
@click.pass_context
def claim_ownership(ctx, vendor: str, account_number: str, credential_id: int):
    """Claim an account for a credential. The first claim wins.

    Examples:
        ledgersync ownership claim max 1234 2
    """
    db = ctx.obj["db"]
    try:
        CredentialService(db).get_credential(credential_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return

    resolver = OwnershipResolver(db)
    if resolver.claim(vendor, account_number, credential_id):
        click.echo(f"Account {account_number} ({vendor}) is owned by credential {credential_id}")
        return

    owner = resolver.check_ownership(vendor, account_number, credential_id)
    click.echo(
        f"Error: Account {account_number} ({vendor}) is already owned by credential {owner}",
        err=True,
    )
    ctx.exit(1)


def register_commands(cli):
    """Register ownership commands with main CLI."""
    cli.add_command(ownership_group, name="ownership")
