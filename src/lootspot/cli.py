"""
lootspot.cli - Maintenance commands for a reward file

Works directly on the storage file with JSON payloads, so it can inspect
and repair a reward table while the host is offline.

Usage:
    lootspot --data-dir ./data list --category gems
    lootspot create-category gems
    lootspot reset-claims 069a79f4-44e9-4726-a5be-fca90e38aaf5
    lootspot clear --yes
    lootspot completions add gems "give {player} diamond 1"
"""

import json
import logging
from pathlib import Path

import click

from .config import load_config
from .data.codec import JsonPayloadCodec, PersistenceCodec
from .service.outcomes import OutcomeCode
from .service.rewards import RewardService


def _accept_any_world(world: str) -> str:
    return world


def _open_service(ctx: click.Context) -> RewardService:
    return RewardService.from_config(
        ctx.obj["config"],
        codec=PersistenceCodec(JsonPayloadCodec()),
        resolver=_accept_any_world,
    )


@click.group()
@click.option(
    '--data-dir',
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help='Directory holding the reward file (default: $LOOTSPOT_DATA_DIR or ~/.lootspot)',
)
@click.option(
    '--log-level',
    type=click.Choice(['debug', 'info', 'warning', 'error'], case_sensitive=False),
    default='warning',
    help='Logging level',
)
@click.pass_context
def main(ctx, data_dir, log_level):
    """Inspect and maintain lootspot reward files."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config"] = load_config(data_dir)


@main.command("list")
@click.option('--category', default=None, help='Only list this category')
@click.pass_context
def list_command(ctx, category):
    """List reward locations."""
    service = _open_service(ctx)
    outcome = service.list_entries(category)
    if outcome.code == OutcomeCode.UNKNOWN_CATEGORY:
        raise click.ClickException(f"Unknown category: {category}")
    if not outcome.records:
        click.echo("No rewards found.")
        return
    for record in outcome.records:
        click.echo(f"{record.key}\t{record.category}\tclaimed={len(record.claimants)}")
    click.echo(f"{outcome.count} rewards")


@main.command("categories")
@click.pass_context
def categories_command(ctx):
    """List known categories."""
    service = _open_service(ctx)
    for name in sorted(service.list_categories()):
        click.echo(name)


@main.command("create-category")
@click.argument('name')
@click.pass_context
def create_category_command(ctx, name):
    """Create an empty category."""
    service = _open_service(ctx)
    outcome = service.create_category(name)
    if outcome.code == OutcomeCode.INVALID_CATEGORY_NAME:
        raise click.ClickException(f"Invalid category name: {name}")
    if outcome.code == OutcomeCode.CATEGORY_EXISTS:
        click.echo(f"Category {name} already exists.")
        return
    click.echo(f"Created category {name}.")


@main.command("reset-claims")
@click.argument('actor')
@click.pass_context
def reset_claims_command(ctx, actor):
    """Forget every claim made by ACTOR."""
    service = _open_service(ctx)
    count = service.reset_claims(actor)
    click.echo(f"Reset {count} claims for {actor}.")


@main.command("clear")
@click.option('--yes', is_flag=True, help='Confirm removal of every reward')
@click.pass_context
def clear_command(ctx, yes):
    """Remove every reward."""
    if not yes:
        raise click.ClickException("Refusing to clear all rewards without --yes")
    service = _open_service(ctx)
    count = service.clear_all()
    click.echo(f"Removed {count} rewards.")


@main.command("stats")
@click.pass_context
def stats_command(ctx):
    """Show store statistics as JSON."""
    service = _open_service(ctx)
    click.echo(json.dumps(service.get_stats(), indent=2, sort_keys=True))


@main.group("completions")
def completions_group():
    """Manage category completion commands."""


@completions_group.command("add")
@click.argument('category')
@click.argument('command')
@click.pass_context
def completions_add(ctx, category, command):
    """Run COMMAND when an actor completes CATEGORY."""
    service = _open_service(ctx)
    if not service.store.has_category(category):
        raise click.ClickException(f"Unknown category: {category}")
    try:
        index = service.completions.add(category, command)
    except ValueError as e:
        raise click.ClickException(str(e))
    click.echo(f"Added completion command #{index} to {category}.")


@completions_group.command("remove")
@click.argument('category')
@click.argument('index', type=int)
@click.pass_context
def completions_remove(ctx, category, index):
    """Remove completion command INDEX from CATEGORY."""
    service = _open_service(ctx)
    if not service.completions.remove(category, index):
        raise click.ClickException(f"No completion command #{index} in {category}")
    click.echo(f"Removed completion command #{index} from {category}.")


@completions_group.command("list")
@click.option('--category', default=None, help='Only list this category')
@click.pass_context
def completions_list(ctx, category):
    """List completion commands."""
    service = _open_service(ctx)
    listing = service.completions.list(category)
    if not any(listing.values()):
        click.echo("No completion commands.")
        return
    for name in sorted(listing):
        for index, command in enumerate(listing[name]):
            click.echo(f"{name}\t#{index}\t{command}")


if __name__ == "__main__":
    main()
