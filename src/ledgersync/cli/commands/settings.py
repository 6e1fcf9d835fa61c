"""Runtime settings commands."""

import click

from ledgersync.cli.error_handling import handle_domain_error
from ledgersync.domain.settings import SETTING_KEYS, SettingsService


@click.group()
def settings_group():
    """View and change runtime settings."""
    pass


@settings_group.command("list")
@click.pass_context
def list_settings(ctx):
    """Show every setting and its effective value."""
    service = SettingsService(ctx.obj["db"])
    for key, value in service.load().to_dict().items():
        click.echo(f"{key:32s} {value}")


@settings_group.command("get")
@click.argument("key", type=click.Choice(SETTING_KEYS))
@click.pass_context
def get_setting(ctx, key: str):
    """Show one setting."""
    service = SettingsService(ctx.obj["db"])
    click.echo(service.get(key))


@settings_group.command("set")
@click.argument("key", type=click.Choice(SETTING_KEYS))
@click.argument("value")
@click.pass_context
def set_setting(ctx, key: str, value: str):
    """Change a setting.

    Examples:
        ledgersync settings set scrape_retries 5
        ledgersync settings set billing_cycle_start_day 1
        ledgersync settings set update_category_on_rescrape true
    """
    service = SettingsService(ctx.obj["db"])
    try:
        stored = service.set(key, value)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Set {key} = {stored}")


def register_commands(cli):
    """Register settings commands with main CLI."""
    cli.add_command(settings_group, name="settings")
