"""User management CLI commands."""

import click
from flask.cli import with_appcontext

from patronat.models import UserRole
from patronat.services.users import create_user, find_user_by_email, update_user
from patronat.services.validation import ValidationError


@click.group('user')
def user_commands():
    """User management commands."""
    pass


@user_commands.command('create')
@click.option('--email', required=True, help='User email')
@click.option('--password', required=True, help='User password')
@click.option('--name', 'display_name', default='', help='Display name')
@click.option('--role', type=click.Choice([r.value for r in UserRole]), default=UserRole.ADMIN.value, show_default=True)
@click.option('--staff', is_flag=True, help='Mark the user as staff')
@with_appcontext
def create_user_command(email, password, display_name, role, staff):
    """Create a user."""
    try:
        user_id, data = create_user(email, password, display_name=display_name, role=role, is_staff=staff)
    except ValidationError as e:
        click.echo(click.style(f'Error: {e}', fg='red'))
        return

    click.echo(click.style('User created successfully!', fg='green'))
    click.echo(f'  ID: {user_id}')
    click.echo(f"  Email: {data['email']}")
    click.echo(f'  Role: {role}')


@user_commands.command('set-role')
@click.option('--email', required=True, help='User email')
@click.option('--role', type=click.Choice([r.value for r in UserRole]), required=True)
@click.option('--staff/--no-staff', default=None, help='Set or clear the staff flag')
@with_appcontext
def set_role_command(email, role, staff):
    """Change a user's role."""
    found = find_user_by_email(email)
    if not found:
        click.echo(click.style(f'Error: No user {email} found', fg='red'))
        return

    user_id, _ = found
    changes = {'role': role}
    if staff is not None:
        changes['isStaff'] = staff
    update_user(user_id, changes, allow_admin_fields=True)
    click.echo(click.style('Role updated.', fg='green'))
