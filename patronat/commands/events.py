"""Scheduled event maintenance commands."""

import click
from flask.cli import with_appcontext

from patronat.services.events import complete_finished_events


@click.group('events')
def event_commands():
    """Event maintenance commands."""
    pass


@event_commands.command('complete-finished')
@with_appcontext
def complete_finished_command():
    """Mark active events whose end has passed as completed (run hourly)."""
    updated = complete_finished_events()
    if not updated:
        click.echo('No events need a status update.')
        return
    click.echo(click.style(f'Marked {len(updated)} events as completed.', fg='green'))
    for event_id in updated:
        click.echo(f'  {event_id}')
