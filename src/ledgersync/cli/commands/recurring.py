"""Recurring payment and non-recurring exclusion commands."""

import click

from ledgersync.cli.date_filters import resolve_cli_date_range
from ledgersync.cli.error_handling import handle_domain_error
from ledgersync.domain.recurring import NonRecurringExclusionService, RecurringPaymentService


@click.command("recurring")
@click.option("--start-date", help="Only consider transactions from this date")
@click.option("--end-date", help="Only consider transactions up to this date")
@click.option("--vendor", help="Only this vendor")
@click.option("--account", "account_number", help="Only this account number")
@click.pass_context
def recurring(
    ctx,
    start_date: str | None,
    end_date: str | None,
    vendor: str | None,
    account_number: str | None,
):
    """Show installment plans and detected recurring charges."""
    start, end = resolve_cli_date_range(ctx, start_date=start_date, end_date=end_date)
    service = RecurringPaymentService(ctx.obj["db"])
    report = service.get_recurring_payments(
        start_date=start, end_date=end, vendor=vendor, account_number=account_number
    )

    if not report.installments and not report.recurring:
        click.echo("No installments or recurring payments found.")
        return

    if report.installments:
        click.echo("\nInstallments:")
        click.echo("-" * 90)
        for plan in report.installments:
            next_payment = plan.next_payment_date.isoformat() if plan.next_payment_date else "-"
            click.echo(
                f"{plan.name[:30]:30s} | {plan.price:>9,.2f} | "
                f"{plan.current_installment}/{plan.total_installments} | "
                f"remaining: {plan.remaining_payments:2d} | next: {next_payment} | {plan.status}"
            )

    if report.recurring:
        click.echo("\nRecurring payments:")
        click.echo("-" * 90)
        for payment in report.recurring:
            click.echo(
                f"{payment.name[:30]:30s} | {payment.monthly_amount:>9,.2f} | "
                f"{payment.frequency.value:10s} | months: {payment.month_count:2d} | "
                f"next: {payment.next_payment_date}"
            )


@click.group()
def exclusion_group():
    """Mark charges as not recurring."""
    pass


@exclusion_group.command("add")
@click.argument("name")
@click.option("--account", "account_number", help="Only exclude the charge on this account")
@click.pass_context
def add_exclusion(ctx, name: str, account_number: str | None):
    """Stop reporting NAME as a recurring payment.

    Examples:
        ledgersync exclusion add "Supermarket"
        ledgersync exclusion add "Parking" --account 1234
    """
    service = NonRecurringExclusionService(ctx.obj["db"])
    try:
        exclusion_id = service.mark(name, account_number)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    if exclusion_id is None:
        click.echo(f"'{name}' is already marked as non-recurring")
        return
    click.echo(f"Marked '{name}' as non-recurring (ID: {exclusion_id})")


@exclusion_group.command("list")
@click.pass_context
def list_exclusions(ctx):
    """List charges marked as not recurring."""
    service = NonRecurringExclusionService(ctx.obj["db"])
    exclusions = service.list_exclusions()
    if not exclusions:
        click.echo("No exclusions found.")
        return

    click.echo("\nNon-recurring exclusions:")
    click.echo("-" * 60)
    for exclusion in exclusions:
        account = exclusion.account_number or "all accounts"
        click.echo(f"ID: {exclusion.id:3d} | {exclusion.name[:30]:30s} | {account}")


@exclusion_group.command("remove")
@click.argument("name")
@click.option("--account", "account_number", help="Account the exclusion was limited to")
@click.pass_context
def remove_exclusion(ctx, name: str, account_number: str | None):
    """Report NAME as recurring again."""
    service = NonRecurringExclusionService(ctx.obj["db"])
    try:
        service.unmark(name, account_number)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Unmarked '{name}' as non-recurring")


@exclusion_group.command("delete")
@click.argument("exclusion_id", type=int)
@click.pass_context
def delete_exclusion(ctx, exclusion_id: int):
    """Delete an exclusion by ID."""
    service = NonRecurringExclusionService(ctx.obj["db"])
    try:
        service.delete_exclusion(exclusion_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Deleted exclusion {exclusion_id}")


def register_commands(cli):
    """Register recurring and exclusion commands with main CLI."""
    cli.add_command(recurring)
    cli.add_command(exclusion_group, name="exclusion")
