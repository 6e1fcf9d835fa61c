"""Categorization rule and category mapping commands."""

import click

from ledgersync.cli.error_handling import handle_domain_error
from ledgersync.domain.categorization import CategoryRuleService


@click.group()
def rule_group():
    """Manage categorization rules."""
    pass


@rule_group.command("add")
@click.argument("pattern")
@click.argument("category")
@click.pass_context
def add_rule(ctx, pattern: str, category: str):
    """Categorize descriptions containing PATTERN as CATEGORY.

    Matching is case-insensitive. Rules are tried in the order they were added.

    Examples:
        ledgersync rule add "netflix" "Subscriptions"
        ledgersync rule add "shufersal" "Groceries"
    """
    service = CategoryRuleService(ctx.obj["db"])
    try:
        rule_id = service.create_rule(pattern, category)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Created rule '{pattern}' -> '{category}' (ID: {rule_id})")


@rule_group.command("list")
@click.pass_context
def list_rules(ctx):
    """List rules in evaluation order."""
    service = CategoryRuleService(ctx.obj["db"])
    rules = service.list_rules()
    if not rules:
        click.echo("No rules found.")
        return

    click.echo("\nRules:")
    click.echo("-" * 60)
    for rule in rules:
        state = "" if rule.is_active else " (disabled)"
        click.echo(f"ID: {rule.id:3d} | {rule.name_pattern:25s} -> {rule.target_category}{state}")


@rule_group.command("enable")
@click.argument("rule_id", type=int)
@click.pass_context
def enable_rule(ctx, rule_id: int):
    """Enable a rule."""
    service = CategoryRuleService(ctx.obj["db"])
    try:
        service.enable_rule(rule_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Enabled rule {rule_id}")


@rule_group.command("disable")
@click.argument("rule_id", type=int)
@click.pass_context
def disable_rule(ctx, rule_id: int):
    """Disable a rule without deleting it."""
    service = CategoryRuleService(ctx.obj["db"])
    try:
        service.disable_rule(rule_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Disabled rule {rule_id}")


@rule_group.command("delete")
@click.argument("rule_id", type=int)
@click.pass_context
def delete_rule(ctx, rule_id: int):
    """Delete a rule."""
    service = CategoryRuleService(ctx.obj["db"])
    try:
        service.delete_rule(rule_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Deleted rule {rule_id}")


@click.group()
def mapping_group():
    """Manage category aliases (source category -> target category)."""
    pass


@mapping_group.command("add")
@click.argument("source_category")
@click.argument("target_category")
@click.pass_context
def add_mapping(ctx, source_category: str, target_category: str):
    """Resolve SOURCE_CATEGORY to TARGET_CATEGORY.

    Adding a mapping for an existing source replaces its target.

    Examples:
        ledgersync mapping add "Food" "Groceries"
    """
    service = CategoryRuleService(ctx.obj["db"])
    try:
        mapping_id = service.add_mapping(source_category, target_category)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Mapped '{source_category}' -> '{target_category}' (ID: {mapping_id})")


@mapping_group.command("list")
@click.pass_context
def list_mappings(ctx):
    """List category mappings."""
    service = CategoryRuleService(ctx.obj["db"])
    mappings = service.list_mappings()
    if not mappings:
        click.echo("No category mappings found.")
        return

    click.echo("\nCategory mappings:")
    click.echo("-" * 60)
    for mapping in mappings:
        click.echo(f"ID: {mapping.id:3d} | {mapping.source_category:25s} -> {mapping.target_category}")


@mapping_group.command("delete")
@click.argument("mapping_id", type=int)
@click.pass_context
def delete_mapping(ctx, mapping_id: int):
    """Delete a category mapping."""
    service = CategoryRuleService(ctx.obj["db"])
    try:
        service.delete_mapping(mapping_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Deleted mapping {mapping_id}")


def register_commands(cli):
    """Register rule and mapping commands with main CLI."""
    cli.add_command(rule_group, name="rule")
    cli.add_command(mapping_group, name="mapping")
