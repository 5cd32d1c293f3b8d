# Overview: Flask CLI command groups for bootstrap, user administration, and ledger checks.

# backend/stockroom/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Create tables and seed the default categories. Idempotent.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User administration:
# - python -m flask users create --email admin@example.com --password "Password123!" --name "Admin" --role admin
#   Create an account with its profile (prompts if options are omitted).
# - python -m flask users list
#   List all profiles with role and active status.
# - python -m flask users set-role staff@example.com admin
#   Change a profile's role.
# - python -m flask users set-active staff@example.com --inactive
#   Activate or deactivate a profile.
#
# Ledger checks:
# - python -m flask stock reconcile
#   Compare each product's quantity with its ledger balance. Exits 1 on drift.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Profile, User, ROLES
from .services.auth_service import normalize_email, register_user
from .services.category_service import seed_default_categories
from .services.stock_service import reconcile
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the inventory database.

    Creates:
    - All tables (if missing)
    - Default categories: Electronics, Furniture, Stationery, Hardware, Consumables

    Does not create users; bootstrap the first admin with `users create --role admin`.
    """
    click.echo("START Initializing inventory database...")

    db.create_all()
    click.echo("PASS Tables ready")

    added = seed_default_categories()
    click.echo(f"PASS Seeded {added} default categories")

    click.echo("DONE Inventory system initialized")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()
    click.echo("BUILD Creating all tables...")
    db.create_all()
    click.echo("PASS Database reset complete")


@click.group('users')
def users_group():
    """User account and profile administration."""


def _profile_by_email(email: str) -> Profile:
    try:
        email = normalize_email(email)
    except ValidationError as e:
        raise click.ClickException(str(e))
    user = db.session.query(User).filter_by(email=email).first()
    if user is None or user.profile is None:
        raise click.ClickException(f"No user with email {email}")
    return user.profile


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--name', default=None, help='Display name (defaults to "User")')
@click.option('--role', type=click.Choice(list(ROLES)), default='staff', show_default=True, help='Role')
@with_appcontext
def create_user_cli(email, password, name, role):
    """Create an account and its profile."""
    try:
        user = register_user(email=email, password=password, name=name, role=role)
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user: {user.email} (ID: {user.id}) with role '{user.profile.role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their role and active flag."""
    rows = (
        db.session.query(User, Profile)
        .join(Profile, Profile.id == User.id)
        .order_by(User.id.asc())
        .all()
    )

    if not rows:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Email':<35} {'Name':<25} {'Role':<8} {'Active'}")
    click.echo("="*90)

    for user, profile in rows:
        active_str = "Yes" if profile.is_active else "No"
        click.echo(f"{user.id:<5} {user.email:<35} {profile.name:<25} {profile.role:<8} {active_str}")

    click.echo("="*90 + "\n")


@users_group.command('set-role')
@click.argument('email')
@click.argument('role', type=click.Choice(list(ROLES)))
@with_appcontext
def set_role_cli(email, role):
    """Change a user's role."""
    profile = _profile_by_email(email)
    profile.role = role
    db.session.commit()
    click.echo(f"PASS {email} is now '{role}'")


@users_group.command('set-active')
@click.argument('email')
@click.option('--active/--inactive', default=True, help='Activate or deactivate')
@with_appcontext
def set_active_cli(email, active):
    """Activate or deactivate a user. Inactive users keep read access."""
    profile = _profile_by_email(email)
    profile.is_active = active
    db.session.commit()
    click.echo(f"PASS {email} is now {'active' if active else 'inactive'}")


@click.group('stock')
def stock_group():
    """Stock ledger checks."""


@stock_group.command('reconcile')
@with_appcontext
def reconcile_cli():
    """Report products whose quantity differs from their ledger balance."""
    report = reconcile()

    if report["count"] == 0:
        click.echo("No products found.")
        return

    for item in report["items"]:
        if item["consistent"]:
            continue
        click.echo(
            f"DRIFT {item['sku']:<20} quantity={item['quantity']:<8} "
            f"ledger={item['ledger_balance']:<8} drift={item['drift']}"
        )

    if not report["consistent"]:
        raise click.ClickException(f"{report['drift_count']} of {report['count']} products drifted from the ledger")

    click.echo(f"PASS {report['count']} products match their ledger")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(stock_group)
