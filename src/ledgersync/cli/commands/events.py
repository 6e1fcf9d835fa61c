"""Scrape audit commands."""

import click


@click.group()
def events_group():
    """Inspect the ingestion audit trail."""
    pass


@events_group.command("list")
@click.option("--limit", type=click.IntRange(1, 500), default=20, show_default=True)
@click.pass_context
def list_events(ctx, limit: int):
    """List recent ingestion attempt-groups, newest first."""
    events = ctx.obj["db"].list_scrape_events(limit=limit)
    if not events:
        click.echo("No scrape events found.")
        return

    click.echo("\nScrape events:")
    click.echo("-" * 90)
    for event in events:
        duration = f"{event.duration_seconds:.1f}s" if event.duration_seconds is not None else "-"
        click.echo(
            f"ID: {event.id:4d} | {event.created_at:%Y-%m-%d %H:%M} | {event.vendor:12s} | "
            f"{event.status.value:8s} | retries: {event.retry_count} | {duration:>7s} | "
            f"{event.message or ''}"
        )


@events_group.command("show")
@click.argument("event_id", type=int)
@click.pass_context
def show_event(ctx, event_id: int):
    """Show one audit event with its stats."""
    event = ctx.obj["db"].get_scrape_event(event_id)
    if event is None:
        click.echo(f"Error: Scrape event {event_id} not found", err=True)
        ctx.exit(1)

    click.echo(f"Event {event.id}: {event.vendor} from {event.start_date}")
    click.echo(f"  Status: {event.status.value}")
    click.echo(f"  Triggered by: {event.triggered_by or '-'}")
    click.echo(f"  Retries: {event.retry_count}")
    if event.duration_seconds is not None:
        click.echo(f"  Duration: {event.duration_seconds:.1f}s")
    click.echo(f"  Message: {event.message or ''}")
    for key, value in (event.report or {}).items():
        click.echo(f"  {key}: {value}")


def register_commands(cli):
    """Register audit commands with main CLI."""
    cli.add_command(events_group, name="events")
