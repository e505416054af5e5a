"""Season management CLI commands."""

import click
from flask.cli import with_appcontext

from patronat.auth import SYSTEM_CONTEXT
from patronat.services.seasons import activate_season, create_season, list_seasons
from patronat.services.store import NotFoundError
from patronat.services.validation import ValidationError


@click.group('season')
def season_commands():
    """Season management commands."""
    pass


def _echo_report(report):
    click.echo(f'  Payments created: {report.created} ({report.adult} adult, {report.junior} junior)')
    click.echo(f'  Already present: {report.skipped}')
    if report.failed:
        click.echo(click.style(f'  Failed: {len(report.failed)}', fg='yellow'))
        for failure in report.failed:
            click.echo(f"    {failure['partnerId']}: {failure['error']}")


@season_commands.command('create')
@click.option('--year', type=int, required=True, help='Season year')
@click.option('--total', type=float, required=True, help='Total price (adult)')
@click.option('--fractions', nargs=3, type=float, required=True, help='Three fraction prices (adult)')
@click.option('--total-junior', type=float, default=0, show_default=True, help='Total price (junior)')
@click.option('--fractions-junior', nargs=3, type=float, default=(0, 0, 0), help='Three fraction prices (junior)')
@click.option('--activate', is_flag=True, help='Activate the season and create partner payments')
@with_appcontext
def create_season_command(year, total, fractions, total_junior, fractions_junior, activate):
    """Create a season."""
    data = {
        'seasonYear': year,
        'totalPrice': total,
        'priceFirstFraction': fractions[0],
        'priceSeconFraction': fractions[1],
        'priceThirdFraction': fractions[2],
        'totalPriceJunior': total_junior,
        'priceFirstFractionJunior': fractions_junior[0],
        'priceSeconFractionJunior': fractions_junior[1],
        'priceThirdFractionJunior': fractions_junior[2],
        'active': activate,
    }
    try:
        season, report = create_season(data, SYSTEM_CONTEXT)
    except ValidationError as e:
        click.echo(click.style(f'Error: {e}', fg='red'))
        return

    click.echo(click.style('Season created successfully!', fg='green'))
    click.echo(f"  ID: {season['id']}")
    click.echo(f"  Year: {season['seasonYear']}")
    click.echo(f"  Active: {season['active']}")
    if report:
        _echo_report(report)


@season_commands.command('activate')
@click.argument('season_id')
@click.option('--no-payments', is_flag=True, help='Do not create partner payments')
@with_appcontext
def activate_season_command(season_id, no_payments):
    """Make a season the active one."""
    try:
        report = activate_season(season_id, SYSTEM_CONTEXT, create_payments=not no_payments)
    except NotFoundError:
        click.echo(click.style(f'Error: Season "{season_id}" not found', fg='red'))
        return

    click.echo(click.style(f'Season {report.season_year} is now active.', fg='green'))
    if not no_payments:
        _echo_report(report)


@season_commands.command('list')
@with_appcontext
def list_seasons_command():
    """List seasons, newest first."""
    seasons = list_seasons()
    if not seasons:
        click.echo('No seasons found.')
        return
    for season in seasons:
        marker = click.style(' (active)', fg='green') if season.get('active') else ''
        click.echo(f"{season['seasonYear']}  {season['id']}  total={season.get('totalPrice', 0)}{marker}")
