# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables, default config, a branch and an admin account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --username jane --name "Jane Moyo" --role CASHIER
# - python -m flask users deactivate --username jane
#
# Snapshots:
# - python -m flask state export backup.json
# - python -m flask state import backup.json --yes
#
# Audit:
# - python -m flask audit tail --limit 20 [--type TRANSACTION]

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Branch, LogType, User, UserRole
from .services import audit_service, auth_service, settings_service, snapshot_service
from .services.errors import ServiceError


DEFAULT_ADMIN_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--branch', 'branch_name', default='Main Branch', show_default=True, help='First branch name')
@click.option('--admin-password', default=DEFAULT_ADMIN_PASSWORD, show_default=True,
              help='Password for the admin account')
@with_appcontext
def init_system(branch_name, admin_password):
    """
    Initialize the ledger: schema, configuration, first branch, admin account.

    Safe to re-run; existing rows are left alone.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing stock ledger...")

    db.create_all()
    click.echo("PASS Tables created")

    config = settings_service.get_config()
    db.session.commit()
    click.echo(f"PASS Configuration: {config.store_name} (tax {config.tax_rate_bps / 100:g}%)")

    branch = db.session.query(Branch).filter_by(name=branch_name).first()
    if branch is None:
        branch = settings_service.create_branch(name=branch_name)
        click.echo(f"PASS Created branch: {branch.name} (ID: {branch.id})")
    else:
        click.echo(f"PASS Using existing branch: {branch.name} (ID: {branch.id})")

    if db.session.query(User).filter_by(username="admin").first():
        click.echo("WARN  User 'admin' already exists, skipping...")
    else:
        try:
            auth_service.create_user(
                username="admin",
                name="Administrator",
                password=admin_password,
                role=UserRole.ADMIN,
                branch_id=branch.id,
            )
            click.echo("PASS Created user: admin (ADMIN)")
        except ServiceError as e:
            db.session.rollback()
            click.echo(f"FAIL Could not create admin: {e.message}")

    click.echo("DONE Stock ledger initialized")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    Wipe the ledger: every product, history entry, sale, delivery and log.

    Export a snapshot first if anything should survive.
    """
    if not yes:
        click.confirm("WARN Every stock record and audit entry will be lost. Continue?", abort=True)

    db.drop_all()
    click.echo("PASS Dropped all tables")
    db.create_all()
    click.echo("PASS Recreated empty schema. Next: python -m flask system init")


@click.group('users')
def users_group():
    """Staff account commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice([r.value for r in UserRole]), default=UserRole.CASHIER.value,
              show_default=True, help='Role')
@click.option('--branch-id', type=int, help='Branch the user works at')
@with_appcontext
def create_user_cli(username, name, password, role, branch_id):
    """
    Create a staff account.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = auth_service.create_user(
            username=username,
            name=name,
            password=password,
            role=role,
            branch_id=branch_id,
        )
    except ServiceError as e:
        db.session.rollback()
        raise click.ClickException(f"FAIL {e.message}")

    click.echo(f"PASS Created user: {user.username} ({user.role.value}, ID: {user.id})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = auth_service.list_users()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Name':<25} {'Role':<16} {'Active'}")
    click.echo("=" * 80)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.name:<25} {user.role.value:<16} {active_str}")
    click.echo("=" * 80 + "\n")


@users_group.command('deactivate')
@click.option('--username', required=True, help='Username')
@with_appcontext
def deactivate_user(username):
    """Disable an account and revoke its sessions."""
    user = db.session.query(User).filter_by(username=username).first()
    if user is None:
        raise click.ClickException(f"FAIL User '{username}' not found")
    auth_service.set_user_active(user.id, False)
    click.echo(f"PASS Deactivated {username}")


@click.group('state')
def state_group():
    """Snapshot export/import."""


@state_group.command('export')
@click.argument('path', type=click.Path(dir_okay=False, writable=True))
@with_appcontext
def export_state_cli(path):
    """Write the full state snapshot as JSON to PATH."""
    state = snapshot_service.export_state()
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(state, fh, indent=2)
    click.echo(f"PASS Exported {len(state['products'])} products, {len(state['logs'])} log entries to {path}")


@state_group.command('import')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def import_state_cli(path, yes):
    """Replace ALL data with the snapshot at PATH."""
    if not yes:
        click.confirm("WARN This will REPLACE ALL DATA. Are you sure?", abort=True)

    with open(path, encoding="utf-8") as fh:
        try:
            data = json.load(fh)
        except json.JSONDecodeError as e:
            raise click.ClickException(f"FAIL {path} is not valid JSON: {e}")

    try:
        counts = snapshot_service.import_state(data)
    except ServiceError as e:
        raise click.ClickException(f"FAIL {e.message}")

    summary = ", ".join(f"{key}={count}" for key, count in counts.items())
    click.echo(f"PASS Imported {summary}")


@click.group('audit')
def audit_group():
    """Audit log inspection."""


@audit_group.command('tail')
@click.option('--limit', type=int, default=20, show_default=True)
@click.option('--type', 'log_type', type=click.Choice([t.value for t in LogType]), help='Only this type')
@click.option('--search', help='Substring over target, details and user')
@with_appcontext
def audit_tail(limit, log_type, search):
    """Show the newest audit entries."""
    entries = audit_service.list_logs(log_type=log_type, search=search, limit=limit)
    if not entries:
        click.echo("No audit entries.")
        return
    for entry in entries:
        click.echo(
            f"{entry.created_at:%Y-%m-%d %H:%M:%S}  {entry.type.value:<13} {entry.severity.value:<7} "
            f"{entry.user_name:<16} {entry.target}: {entry.details}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(state_group)
    app.cli.add_command(audit_group)
