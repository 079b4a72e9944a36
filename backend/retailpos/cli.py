# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init --username admin --password "secret1" --store-name "Corner Shop"
#   Same as POST /api/setup: roles, administrator, units, default category, walk-in customer.
# - python -m flask system status
#   Show whether setup has run and how many accounts exist.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system wipe --username admin --password "secret1"
#   Delete sales, purchases, stock ledger and price history; keep catalog, users and roles.
# - python -m flask system backup --output backup.json
#   Write every table to one JSON file (no password hashes).
# - python -m flask system restore --input backup.json --username admin --password "secret1"
#   Replace all store data with the backup; users and roles are kept.
#
# User and role inspection:
# - python -m flask users list
# - python -m flask users create --username jane --full-name "Jane Doe" --role Cashier
# - python -m flask roles list
#
# Stock:
# - python -m flask stock reconcile
#   Compare every product's stored quantity with its movement ledger.

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product, Role, User
from .services import setup_service, stock_service
from .services.backup_service import generate_backup, restore_backup
from .services.auth_service import create_user, validate_password_strength
from .services.maintenance_service import reset_transactions
from .validation import ConflictError, NotFoundError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--username', prompt=True, help='Administrator username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Administrator password')
@click.option('--store-name', prompt=True, help='Store name shown on receipts')
@with_appcontext
def init_system(username, password, store_name):
    """
    Initialize the store from the command line.

    Refuses to run once any real user exists, exactly like the setup API.
    """
    click.echo("START Initializing store...")
    try:
        admin = setup_service.initialize_system(username, password, password, store_name)
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    roles = db.session.query(Role).order_by(Role.name).all()
    click.echo(f"PASS Roles: {', '.join(r.name for r in roles)}")
    click.echo(f"PASS Administrator created: {admin.username} (ID: {admin.id})")
    click.echo("DONE Store initialized. Log in with the administrator account.")


@system_group.command('status')
@with_appcontext
def system_status():
    """Show setup state and account counts."""
    initialized = setup_service.is_system_initialized()
    click.echo(f"Initialized: {'yes' if initialized else 'no'}")
    click.echo(f"Users:       {setup_service.real_user_count()}")
    click.echo(f"Roles:       {db.session.query(Role).count()}")
    click.echo(f"Products:    {db.session.query(Product).count()}")


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

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@system_group.command('wipe')
@click.option('--username', prompt=True, help='Administrator username')
@click.option('--password', prompt=True, hide_input=True, help='Administrator password')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def wipe_data(username, password, yes):
    """
    Clear all transactional data while preserving the catalog.

    Keeps products (and their current stock), categories, units, customers,
    suppliers, users, roles and settings. Customer totals and balances are
    zeroed.
    """
    if not yes:
        click.confirm("WARN This will DELETE all transactional data. Are you sure?", abort=True)

    user = db.session.query(User).filter_by(username=username).first()
    if user is None or user.is_system_account:
        click.echo(f"FAIL User '{username}' not found")
        raise SystemExit(1)

    try:
        deleted = reset_transactions(user.id, password)
    except (ValidationError, NotFoundError) as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    for table, count in deleted.items():
        click.echo(f"  {table:<22} {count}")
    click.echo("PASS Transactional data wiped.")


@system_group.command('backup')
@click.option('--output', 'output_path', required=True, type=click.Path(dir_okay=False, writable=True),
              help='File to write the JSON backup to')
@with_appcontext
def backup_data(output_path):
    """Write a JSON backup of every table (password hashes excluded)."""
    backup = generate_backup()
    with open(output_path, 'w', encoding='utf-8') as fh:
        json.dump(backup, fh, indent=2)

    rows = sum(len(r) for r in backup["tables"].values())
    click.echo(f"PASS Backup written to {output_path} ({rows} rows)")


@system_group.command('restore')
@click.option('--input', 'input_path', required=True, type=click.Path(exists=True, dir_okay=False),
              help='JSON backup file')
@click.option('--username', prompt=True, help='Administrator username')
@click.option('--password', prompt=True, hide_input=True, help='Administrator password')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def restore_data(input_path, username, password, yes):
    """Replace all store data with a JSON backup. Users and roles are kept."""
    if not yes:
        click.confirm("WARN This will REPLACE all store data with the backup. Are you sure?", abort=True)

    user = db.session.query(User).filter_by(username=username).first()
    if user is None or user.is_system_account:
        click.echo(f"FAIL User '{username}' not found")
        raise SystemExit(1)

    try:
        with open(input_path, encoding='utf-8') as fh:
            payload = json.load(fh)
    except ValueError:
        click.echo("FAIL Backup file is not valid JSON")
        raise SystemExit(1)

    try:
        restored = restore_backup(user.id, password, payload)
    except (ValidationError, NotFoundError) as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    for table, count in restored.items():
        click.echo(f"  {table:<22} {count}")
    click.echo("PASS Database restored from backup.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).filter(User.is_system_account.is_(False)).order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Full name':<25} {'Active':<8} {'Role'}")
    click.echo("="*80)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        role_name = user.role.name if user.role else "none"
        click.echo(f"{user.id:<5} {user.username:<20} {user.full_name:<25} {active_str:<8} {role_name}")

    click.echo("="*80 + "\n")


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--full-name', prompt=True, help='Full name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', 'role_name', prompt=True, help='Role name (e.g. Cashier)')
@with_appcontext
def create_user_cli(username, full_name, password, role_name):
    """Create a staff account with an existing role."""
    role = db.session.query(Role).filter(db.func.lower(Role.name) == role_name.lower()).first()
    if role is None:
        click.echo(f"FAIL Role '{role_name}' not found")
        raise SystemExit(1)

    try:
        validate_password_strength(password)
        user = create_user(username=username, password=password, full_name=full_name, role_id=role.id)
        db.session.commit()
    except (ValidationError, ConflictError, NotFoundError) as e:
        db.session.rollback()
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    click.echo(f"PASS Created user: {user.username} with role '{role.name}'")


@click.group('roles')
def roles_group():
    """Role inspection commands."""


@roles_group.command('list')
@with_appcontext
def list_roles():
    """List roles and the actions each one grants."""
    roles = db.session.query(Role).order_by(Role.is_system.desc(), Role.name).all()
    if not roles:
        click.echo("No roles found. Run 'python -m flask system init' first.")
        return

    for role in roles:
        marker = " (system)" if role.is_system else ""
        click.echo(f"\n{role.name}{marker} - {len(role.users)} user(s)")
        for module, actions in role.matrix.to_dict().items():
            granted = [action for action, allowed in actions.items() if allowed]
            if granted:
                click.echo(f"  {module:<12} {', '.join(granted)}")


@click.group('stock')
def stock_group():
    """Stock ledger maintenance."""


@stock_group.command('reconcile')
@with_appcontext
def reconcile_stock():
    """Report products whose stored quantity disagrees with the movement ledger."""
    mismatches = 0
    for product in db.session.query(Product).order_by(Product.id).all():
        result = stock_service.reconcile_product(product.id)
        if not result["in_sync"]:
            mismatches += 1
            click.echo(
                f"WARN {product.name} (ID: {product.id}): stock {result['stock']}, ledger {result['ledger_total']}"
            )

    if mismatches:
        click.echo(f"FAIL {mismatches} product(s) out of sync")
        raise SystemExit(1)
    click.echo("PASS All products match their ledger")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(roles_group)
    app.cli.add_command(stock_group)
