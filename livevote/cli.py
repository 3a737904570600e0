import click
from flask import current_app
from sqlalchemy.exc import IntegrityError

from .errors import VotingError
from .extensions import db
from .models.user import User
from .services.store import VoteStore


def register_commands(app):
    @app.cli.command("init-db")
    def init_db():
        """Create all tables (use `flask db upgrade` once migrations exist)."""
        db.create_all()
        click.echo("Database tables created")

    @app.cli.command("create-admin")
    @click.option("--email", prompt=True)
    @click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
    def create_admin(email, password):
        """Create an administrator account."""
        if len(password) < 8:
            raise click.BadParameter("Password must be at least 8 characters", param_hint="--password")

        user = User(email=email.lower().strip(), role=User.ROLE_ADMIN)
        user.set_password(password)
        db.session.add(user)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise click.ClickException(f"User {email} already exists")
        click.echo(f"Admin {user.email} created")

    @app.cli.command("create-session")
    @click.argument("name")
    @click.option("--voters", "voter_count", type=click.IntRange(min=1), required=True, help="Number of voter tokens to issue")
    @click.option("--candidates", "candidate_count", type=click.IntRange(min=1), default=None)
    @click.option("--selections", "selection_count", type=click.IntRange(min=1), default=None)
    def create_session(name, voter_count, candidate_count, selection_count):
        """Create a pending voting session with voters and placeholder candidates."""
        config = current_app.config
        if candidate_count is None:
            candidate_count = config["DEFAULT_CANDIDATE_COUNT"]
        if selection_count is None:
            selection_count = config["DEFAULT_SELECTION_COUNT"]

        try:
            voting = VoteStore(db.session).create_session(
                name=name,
                voter_count=voter_count,
                candidate_count=candidate_count,
                selection_count=selection_count,
            )
        except VotingError as e:
            raise click.ClickException(e.message)
        click.echo(f"Session {voting.id} created ({voter_count} voters)")
