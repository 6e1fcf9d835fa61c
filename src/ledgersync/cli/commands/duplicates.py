"""Duplicate sweep commands."""

import click

from ledgersync.domain.dedup import DuplicateSweep


def _print_pairs(pairs) -> None:
    for pair in pairs:
        click.echo(
            f"{pair.vendor:12s} | {pair.name[:30]:30s} | {pair.price:>10,.2f} | "
            f"keep {pair.keep_identifier} ({pair.keep_date}) | "
            f"delete {pair.delete_identifier} ({pair.delete_date})"
        )


@click.group()
def duplicates_group():
    """Find and remove timezone-shifted duplicate transactions."""
    pass


@duplicates_group.command("list")
@click.pass_context
def list_duplicates(ctx):
    """Preview duplicate pairs and which row would be kept."""
    pairs = DuplicateSweep(ctx.obj["db"]).find_duplicates()
    if not pairs:
        click.echo("No duplicates found.")
        return
    click.echo(f"Found {len(pairs)} duplicate pair(s):")
    _print_pairs(pairs)


@duplicates_group.command("remove")
@click.option("--yes", is_flag=True, help="Skip confirmation")
@click.pass_context
def remove_duplicates(ctx, yes: bool):
    """Delete the losing row of every duplicate pair.

    All deletions happen in one transaction.
    """
    sweep = DuplicateSweep(ctx.obj["db"])
    pairs = sweep.find_duplicates()
    if not pairs:
        click.echo("No duplicates found.")
        return

    _print_pairs(pairs)
    if not yes and not click.confirm(f"Delete {len(pairs)} duplicate transaction(s)?"):
        click.echo("Deletion cancelled.")
        return

    removed = sweep.remove_duplicates()
    click.echo(f"Resolved {len(removed)} duplicate pair(s)")


def register_commands(cli):
    """Register duplicate commands with main CLI."""
    cli.add_command(duplicates_group, name="duplicates")
