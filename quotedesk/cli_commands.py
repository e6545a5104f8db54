"""
Flask CLI commands.

Commands:
- flask init-db: Create all tables
- flask create-user: Create a user with a role
- flask mark-overdue: Move open invoices past their due date to overdue
"""

import click
from datetime import date
from quotedesk.database import get_session, create_all
from quotedesk.exceptions import QuoteDeskError
from quotedesk.models import UserRole


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create database tables that do not exist yet."""
        create_all()
        click.echo(click.style('✅ Database tables created.', fg='green'))

    @app.cli.command('create-user')
    @click.option('--email', prompt=True, help='User email address')
    @click.option('--name', prompt=True, help='Display name')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='User password')
    @click.option('--role', type=click.Choice([role.value for role in UserRole]), default='user',
                  show_default=True, help='User role')
    def create_user_command(email, name, password, role):
        """Create a new user."""
        from quotedesk.services.auth_service import create_user

        try:
            user = create_user(get_session(), email, password, name, role=role)
        except QuoteDeskError as e:
            click.echo(click.style(f'❌ {e.message}', fg='red'))
            raise SystemExit(1)

        click.echo(click.style('\n✅ User created!', fg='green', bold=True))
        click.echo(f'   Email: {user.email}')
        click.echo(f'   Role: {user.role.value}')
        click.echo(f'   ID: {user.id}')

    @app.cli.command('mark-overdue')
    @click.option('--today', type=click.DateTime(formats=['%Y-%m-%d']), default=None,
                  help='Reference date (defaults to today)')
    def mark_overdue_command(today):
        """Mark pending/partial invoices past their due date as overdue."""
        from quotedesk.services.invoice_alerts_service import mark_overdue_invoices

        reference = today.date() if today else date.today()
        invoices = mark_overdue_invoices(get_session(), reference)
        for invoice in invoices:
            click.echo(f'   {invoice.invoice_number} (due {invoice.due_date.isoformat()})')
        click.echo(click.style(f'✅ {len(invoices)} invoice(s) marked overdue.', fg='green'))
