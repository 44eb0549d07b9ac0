"""
Flask CLI commands for operators.

Commands:
- flask init-db: Create all tables
- flask create-admin: Create an account with the admin role, or promote an existing one
"""
import click

from storefront.database import create_all, get_session
from storefront.exceptions import StorefrontError
from storefront.models import AuthUser, UserRole
from storefront.services.auth_service import AuthService


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create database tables."""
        create_all()
        click.echo(click.style('✅ Database tables created', fg='green'))

    @app.cli.command('create-admin')
    @click.option('--email', prompt=True, help='Admin email address')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
    @click.option('--full-name', default=None, help='Display name')
    def create_admin(email, password, full_name):
        """Create an admin account for the storefront console."""
        db = get_session()
        auth = AuthService(db)

        user = db.query(AuthUser).filter(AuthUser.email == email.strip().lower()).first()
        if user is None:
            try:
                session = auth.sign_up(email, password, full_name)
            except StorefrontError as e:
                db.rollback()
                click.echo(click.style(f'❌ {e.message}', fg='red'))
                return
            user = db.query(AuthUser).filter(AuthUser.id == session['user']['id']).first()

        user.profile.role = UserRole.ADMIN.value
        db.commit()

        click.echo(click.style('\n✅ Admin ready', fg='green', bold=True))
        click.echo(f'   Email: {user.email}')
        click.echo(f'   ID: {user.id}')
