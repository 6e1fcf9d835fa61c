"""Ingestion command."""

import click

from ledgersync.cli.date_filters import parse_cli_date
from ledgersync.cli.error_handling import handle_domain_error
from ledgersync.domain.ingestion import IngestionOrchestrator
from ledgersync.domain.scraper import JsonFileScraper


@click.command("ingest")
@click.argument("credential_id", type=int)
@click.option(
    "--from-file",
    "result_file",
    type=click.Path(exists=True, dir_okay=False),
    required=True,
    help="Captured scraper result (JSON) to replay",
)
@click.option("--start-date", default="30 days ago", show_default=True, help="First date to collect")
@click.option("--end-date", help="Last date to collect")
@click.option("--max-retries", type=click.IntRange(0, 10), help="Override the scrape_retries setting")
@click.option("--triggered-by", help="Actor recorded on the audit event (defaults to 'cli')")
@click.pass_context
def ingest(
    ctx,
    credential_id: int,
    result_file: str,
    start_date: str,
    end_date: str | None,
    max_retries: int | None,
    triggered_by: str | None,
):
    """Ingest transactions for a credential.

    Examples:
        ledgersync ingest 1 --from-file max-2024-01.json
        ledgersync ingest 2 --from-file leumi.json --start-date 2024-01-01 --max-retries 0
    """
    start = parse_cli_date(ctx, start_date, "start date")
    end = parse_cli_date(ctx, end_date, "end date")

    orchestrator = IngestionOrchestrator(ctx.obj["db"], JsonFileScraper(result_file))
    try:
        result = orchestrator.run(
            credential_id,
            start,
            end_date=end,
            triggered_by=triggered_by or "cli",
            max_retries=max_retries,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
        return

    stats = result.stats
    click.echo(f"Ingestion succeeded (event {result.audit_id}, {result.attempts} attempt(s))")
    click.echo(f"  Accounts processed: {stats.accounts}")
    click.echo(f"  Saved: {stats.saved_transactions}")
    click.echo(f"  Updated: {stats.updated_transactions}")
    click.echo(f"  Duplicates: {stats.duplicate_transactions}")
    click.echo(f"  Cards skipped: {stats.skipped_cards}")


def register_commands(cli):
    """Register ingest command with main CLI."""
    cli.add_command(ingest)
