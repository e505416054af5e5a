"""Crew maintenance commands."""

import click
from flask.cli import with_appcontext

from patronat.services.crew_sync import reconcile_crew_games


@click.group('crews')
def crew_commands():
    """Crew maintenance commands."""
    pass


@crew_commands.command('reconcile')
@click.option('--season', default=None, help='Only crews of this season')
@with_appcontext
def reconcile_command(season):
    """Repair the game copies held by each crew."""
    report = reconcile_crew_games(season)
    click.echo(click.style('Crew games reconciled.', fg='green'))
    click.echo(f'  Created: {report.created}')
    click.echo(f'  Updated: {report.updated}')
    click.echo(f'  Removed: {report.removed}')
