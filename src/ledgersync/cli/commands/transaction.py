"""Transaction commands."""

import click

from ledgersync.cli.date_filters import parse_cli_date, resolve_cli_date_range
from ledgersync.cli.error_handling import handle_domain_error
from ledgersync.domain.transaction import TransactionService
from ledgersync.utils.amount_parser import parse_amount


@click.group()
def transaction_group():
    """Browse, add and recategorize transactions."""
    pass


@transaction_group.command("list")
@click.option("--start-date", help="Start date (YYYY-MM-DD or relative like '30 days ago')")
@click.option("--end-date", help="End date")
@click.option("--vendor", help="Only this vendor")
@click.option("--account", "account_number", help="Only this account number")
@click.option("--limit", type=click.IntRange(1), default=50, show_default=True)
@click.pass_context
def list_transactions(
    ctx,
    start_date: str | None,
    end_date: str | None,
    vendor: str | None,
    account_number: str | None,
    limit: int,
):
    """List transactions, newest first."""
    start, end = resolve_cli_date_range(ctx, start_date=start_date, end_date=end_date)
    service = TransactionService(ctx.obj["db"])
    transactions = service.list_transactions(
        start_date=start, end_date=end, vendor=vendor, account_number=account_number
    )
    if not transactions:
        click.echo("No transactions found.")
        return

    for txn in transactions[:limit]:
        click.echo(
            f"{txn.date} | {txn.vendor:12s} | {txn.name[:30]:30s} | {txn.price:>10,.2f} | "
            f"{(txn.category or '-'):15s} | {txn.identifier}"
        )
    if len(transactions) > limit:
        click.echo(f"... {len(transactions) - limit} more")


@transaction_group.command("add")
@click.argument("label")
@click.argument("txn_date", metavar="DATE")
@click.argument("amount")
@click.argument("description")
@click.option("--category", help="Category")
@click.option("--account", "account_number", help="Account number")
@click.option("--memo", help="Free-form memo")
@click.pass_context
def add_transaction(
    ctx,
    label: str,
    txn_date: str,
    amount: str,
    description: str,
    category: str | None,
    account_number: str | None,
    memo: str | None,
):
    """Record a manual transaction under the vendor manual_LABEL.

    Examples:
        ledgersync transaction add --category Groceries -- cash 2024-01-15 -45.50 "Farmers market"
    """
    parsed_date = parse_cli_date(ctx, txn_date, "date")
    try:
        parsed_amount = parse_amount(amount)
        service = TransactionService(ctx.obj["db"])
        identifier = service.create_manual_transaction(
            label,
            parsed_date,
            parsed_amount,
            description,
            category=category,
            account_number=account_number,
            memo=memo,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Created transaction {identifier} (manual_{label})")


@transaction_group.command("categorize")
@click.argument("vendor")
@click.argument("identifier")
@click.argument("category")
@click.pass_context
def categorize_transaction(ctx, vendor: str, identifier: str, category: str):
    """Set a transaction's category.

    Future transactions with the same description get the same category.
    """
    service = TransactionService(ctx.obj["db"])
    try:
        service.update_category(identifier, vendor, category)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Transaction {identifier} categorized as '{category}'")


@transaction_group.command("delete")
@click.argument("vendor")
@click.argument("identifier")
@click.option("--yes", is_flag=True, help="Skip confirmation")
@click.pass_context
def delete_transaction(ctx, vendor: str, identifier: str, yes: bool):
    """Delete a transaction."""
    service = TransactionService(ctx.obj["db"])
    if not yes and not click.confirm(f"Delete transaction {identifier} ({vendor})?"):
        click.echo("Deletion cancelled.")
        return
    try:
        service.delete_transaction(identifier, vendor)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Deleted transaction {identifier}")


def register_commands(cli):
    """Register transaction commands with main CLI."""
    cli.add_command(transaction_group, name="transaction")
