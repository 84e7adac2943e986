"""
Flask CLI commands for platform setup.

Commands:
- flask init-db: Create all tables
- flask create-gym: Create a gym with its system roles and an owner user
"""

import click
import re
from gymapp.database import get_session, create_all
from gymapp.exceptions import GymError
from gymapp.models import Gym, OWNER_ROLE


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create every table that does not exist yet."""
        create_all()
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('create-gym')
    @click.option('--slug', prompt=True, help='URL-safe gym identifier')
    @click.option('--name', prompt=True, help='Gym display name')
    @click.option('--owner-email', prompt=True, help='Owner email address')
    @click.option('--owner-password', prompt=True, hide_input=True, confirmation_prompt=True, help='Owner password')
    @click.option('--owner-first-name', default='Owner', show_default=True)
    def create_gym(slug, name, owner_email, owner_password, owner_first_name):
        """Create a gym, seed GymOwner/Trainer/Student roles and an owner user."""
        from gymapp.services.role_service import seed_system_roles
        from gymapp.services.user_service import create_user

        if not re.match(r'^[a-z0-9][a-z0-9-]{1,78}$', slug):
            click.echo(click.style('Invalid slug. Use lowercase letters, digits and dashes.', fg='red'))
            return

        db_session = get_session()
        if db_session.query(Gym).filter_by(slug=slug).first():
            click.echo(click.style(f'A gym with slug {slug} already exists.', fg='red'))
            return

        try:
            gym = Gym(slug=slug, name=name, active=True)
            db_session.add(gym)
            db_session.flush()

            # Commits the gym together with its system roles
            roles = seed_system_roles(db_session, gym.id)
            owner = create_user(
                db_session, gym.id,
                email=owner_email,
                password=owner_password,
                role_id=roles[OWNER_ROLE].id,
                first_name=owner_first_name
            )
        except GymError as e:
            db_session.rollback()
            click.echo(click.style(f'Error creating gym: {e.message}', fg='red'))
            return

        click.echo(click.style('\nGym created successfully!', fg='green', bold=True))
        click.echo(f'   Gym: {gym.name} (id {gym.id})')
        click.echo(f'   Roles: {", ".join(sorted(roles))}')
        click.echo(f'   Owner: {owner.email}')
