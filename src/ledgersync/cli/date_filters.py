"""CLI helpers for date options."""

from datetime import date

import click

from ledgersync.utils.date_parser import parse_date


def parse_cli_date(ctx: click.Context, value: str | None, label: str) -> date | None:
    """Parse an optional date option, exiting with an error if it is invalid."""
    if value is None:
        return None
    try:
        return parse_date(value)
    except ValueError as e:
        click.echo(f"Error: Invalid {label}: {e}", err=True)
        ctx.exit(1)


def resolve_cli_date_range(
    ctx: click.Context,
    *,
    start_date: str | None,
    end_date: str | None,
) -> tuple[date | None, date | None]:
    """Resolve --start-date/--end-date options into a validated range."""
    start = parse_cli_date(ctx, start_date, "start date")
    end = parse_cli_date(ctx, end_date, "end date")

    if start is not None and end is not None and start > end:
        click.echo("Error: Start date must be before or equal to end date.", err=True)
        ctx.exit(1)

    return start, end
