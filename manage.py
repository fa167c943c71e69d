"""
manage.py — CLI admin commands for Wanderwise.

Usage:
    python manage.py init-db
    python manage.py create-user
    python manage.py create-user --email walker@example.com --name "Walker"
    python manage.py deactivate-user --email walker@example.com
"""

import click

from auth import hash_password
from database import SessionLocal, init_db
from models import User


@click.group()
def cli():
    """Wanderwise administration."""


@cli.command('init-db')
def init_db_command():
    """Create any missing tables."""
    init_db()
    click.echo('✓ Database tables are in place')


@cli.command('create-user')
@click.option('--email',    prompt=True,  help='Account email address')
@click.option('--name',     prompt=True,  default='', help='Full name')
@click.option('--password', prompt=True,  hide_input=True, confirmation_prompt=True,
              help='Login password (hidden)')
def create_user(email: str, name: str, password: str):
    """Create a new user account."""
    email = email.strip().lower()
    name  = name.strip() or None

    if '@' not in email:
        click.echo('✗ A valid email address is required.', err=True)
        raise SystemExit(1)
    if len(password) < 8:
        click.echo('✗ Password must be at least 8 characters.', err=True)
        raise SystemExit(1)

    init_db()
    with SessionLocal() as session:
        existing = session.query(User).filter_by(email=email).first()
        if existing:
            click.echo(f'✗ An account with email {email!r} already exists (id={existing.id}).', err=True)
            raise SystemExit(1)

        user = User(
            email         = email,
            full_name     = name,
            password_hash = hash_password(password),
            is_active     = True,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        click.echo(f'✓ Created account for {email!r} (id={user.id})')


@cli.command('deactivate-user')
@click.option('--email', prompt=True, help='Account email address')
def deactivate_user(email: str):
    """Disable login for an account without deleting its routes."""
    email = email.strip().lower()
    with SessionLocal() as session:
        user = session.query(User).filter_by(email=email).first()
        if not user:
            click.echo(f'✗ No account with email {email!r}.', err=True)
            raise SystemExit(1)
        user.is_active = False
        session.commit()
        click.echo(f'✓ Deactivated {email!r} (id={user.id})')


if __name__ == '__main__':
    cli()
