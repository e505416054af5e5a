"""CLI commands for the Patronat de Festes service."""

from .crews import crew_commands
from .events import event_commands
from .export import export_commands
from .season import season_commands
from .user import user_commands


def register_commands(app):
    """Register all CLI command groups with the Flask app."""
    app.cli.add_command(crew_commands)
    app.cli.add_command(event_commands)
    app.cli.add_command(export_commands)
    app.cli.add_command(season_commands)
    app.cli.add_command(user_commands)
