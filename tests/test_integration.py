"""Integration tests for end-to-end workflows."""

import json

from ledgersync.cli.main import cli
from conftest import scrape_success, scraped_txn


def _month_of_charges(month):
    return [
        scraped_txn("Netflix.com", f"2024-{month:02d}-05", -49.9, identifier=f"netflix-{month}"),
        scraped_txn("Shufersal Deal", f"2024-{month:02d}-12", -180 - month, identifier=f"shufersal-{month}"),
    ]


def test_full_workflow(cli_runner, temp_db, tmp_path):
    """Credentials -> rules -> two overlapping ingests -> recurring report."""
    db_args = ["--db-path", temp_db.database_path]

    # Two logins that both see the same family card
    for username in ("household", "personal"):
        result = cli_runner.invoke(
            cli, [*db_args, "credential", "add", "max", "--username", username, "--password", "secret"]
        )
        assert result.exit_code == 0

    result = cli_runner.invoke(cli, [*db_args, "rule", "add", "netflix", "Subscriptions"])
    assert result.exit_code == 0

    charges = [txn for month in (1, 2, 3) for txn in _month_of_charges(month)]
    payload = scrape_success(("1234", charges, 1200), ("5678", []))
    path = tmp_path / "max.json"
    path.write_text(json.dumps(payload), encoding="utf-8")

    result = cli_runner.invoke(
        cli, [*db_args, "ingest", "1", "--from-file", str(path), "--start-date", "2024-01-01"]
    )
    assert result.exit_code == 0, result.output
    assert "Saved: 6" in result.output
    assert "Accounts processed: 2" in result.output

    # The second login sees the same cards; the first claim owns them
    result = cli_runner.invoke(
        cli, [*db_args, "ingest", "2", "--from-file", str(path), "--start-date", "2024-01-01"]
    )
    assert result.exit_code == 0, result.output
    assert "Saved: 0" in result.output
    assert "Cards skipped: 2" in result.output

    transactions = temp_db.list_transactions()
    assert len(transactions) == 6
    netflix = [t for t in transactions if t.name == "Netflix.com"]
    assert {t.category for t in netflix} == {"Subscriptions"}

    result = cli_runner.invoke(cli, [*db_args, "ownership", "list"])
    assert "1234" in result.output
    assert "5678" in result.output

    result = cli_runner.invoke(cli, [*db_args, "recurring"])
    assert result.exit_code == 0
    assert "Netflix.com" in result.output
    assert "monthly" in result.output
    assert "49.90" in result.output

    result = cli_runner.invoke(cli, [*db_args, "events", "list"])
    assert result.output.count("success") == 2
