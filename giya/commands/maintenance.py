"""
CLI Commands for maintenance tasks.

These can be run manually or via cron:

# Offer expiration (daily, shortly after midnight)
5 0 * * * cd /app && flask maintenance expire-offers
"""
import click
from flask.cli import with_appcontext

from ..services.maintenance_service import MaintenanceService


@click.group('maintenance')
def maintenance_cli():
    """Maintenance commands."""
    pass


@maintenance_cli.command('expire-offers')
@click.option('--dry-run', is_flag=True, help='Preview without deactivating anything')
@with_appcontext
def expire_offers(dry_run):
    """Deactivate deals and punch cards past their end date."""
    result = MaintenanceService.expire_offers(dry_run=dry_run)
    prefix = '[DRY RUN] ' if dry_run else ''
    click.echo(f"{prefix}Deals expired: {result['deals']}")
    click.echo(f"{prefix}Punch cards expired: {result['punch_cards']}")


@maintenance_cli.command('recount-punches')
@with_appcontext
def recount_punches():
    """Rebuild punch counters from recorded punches."""
    result = MaintenanceService.recount_punches()
    click.echo(f"Checked: {result['checked']} participations")
    click.echo(f"Repaired: {result['repaired']}")


def init_app(app):
    app.cli.add_command(maintenance_cli)
