"""Excel export CLI commands."""

import click
from pathlib import Path
from flask.cli import with_appcontext

from patronat.services.export import export_partner, export_partners
from patronat.services.store import NotFoundError


@click.group('export')
def export_commands():
    """Excel export commands."""
    pass


@export_commands.command('partners')
@click.option('--partner', 'partner_id', default=None, help='Export a single partner')
@click.option('--output-dir', default='.', show_default=True, help='Directory for the workbook')
@with_appcontext
def export_partners_command(partner_id, output_dir):
    """Export partners and their payments to an XLSX workbook."""
    try:
        filename, content = export_partner(partner_id) if partner_id else export_partners()
    except NotFoundError:
        click.echo(click.style(f'Error: Partner "{partner_id}" not found', fg='red'))
        return

    target_dir = Path(output_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / filename
    target.write_bytes(content)
    click.echo(click.style(f'Exported to {target}', fg='green'))
