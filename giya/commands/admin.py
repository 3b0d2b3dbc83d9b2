"""
Admin account commands.

Admins cannot sign up through the API; create them here:

    flask admin create --email admin@example.com --password 's3cret!'
"""
import click
from flask.cli import with_appcontext

from ..services.auth_service import AuthService
from ..utils.exceptions import GiyaError


@click.group('admin')
def admin_cli():
    """Admin account commands."""
    pass


@admin_cli.command('create')
@click.option('--email', required=True, help='Admin email address')
@click.option('--password', required=True, prompt=True, hide_input=True, help='Admin password')
@with_appcontext
def create_admin(email, password):
    """Create an admin account."""
    try:
        user = AuthService.create_admin(email, password)
    except GiyaError as e:
        raise click.ClickException(e.message)
    click.echo(f"Created admin {user.email} (id={user.id})")


def init_app(app):
    app.cli.add_command(admin_cli)
