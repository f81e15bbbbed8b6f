# Overview: Flask CLI command groups for bootstrap, provisioning, and inspection.

# backend/clinicstock/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User provisioning:
# - python -m flask users create --username admin --password "Password123!" --role admin
#   Create a user (prompts if options are omitted).
# - python -m flask users list [--all]
#   List users with role and active status.
# - python -m flask users set-role admin manager
#   Change a user's role.
# - python -m flask users deactivate cashier
#   Deactivate a user.
#
# Tokens:
# - python -m flask tokens issue admin
#   Verify the password and print a bearer token.
#
# Catalogue:
# - python -m flask products create --sku AMOX-500 --name "Amoxicillin 500mg" --base-unit piece --reorder-point 20 --opening-stock 50
#   Create a product; a non-zero opening stock is booked as an "opening" movement.
#
# Inspection:
# - python -m flask units list [--type weight]
#   List measurement units.
# - python -m flask sequences peek restock [--date 2026-01-04]
#   Show the last value issued by a daily document counter.

import math
from datetime import datetime

import click
from flask.cli import with_appcontext

from .errors import ClinicError
from .extensions import db
from .models import Product, User
from .permissions import ROLES
from .services import identity_service, movement_service, sequence_service, token_service, unit_conversion
from .services.auth_service import PasswordValidationError, create_user, verify_password


def _get_user_or_fail(username: str) -> User | None:
    user = db.session.query(User).filter_by(username=username).first()
    if not user:
        click.echo(f"FAIL User '{username}' not found")
    return user


# =============================================================================
# SYSTEM
# =============================================================================

@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


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

    identity_service.get_identity_cache().clear_all()
    click.echo("PASS Database reset complete.")


# =============================================================================
# USERS
# =============================================================================

@click.group('users')
def users_group():
    """User provisioning commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', default=None, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(ROLES), default='staff', show_default=True, help='Role')
@with_appcontext
def create_user_cli(username, email, password, role):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(username=username, password=password, role=role, email=email)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        return
    except ClinicError as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")
        return

    click.echo(f"PASS Created user: {user.username} (ID: {user.id}) with role '{user.role}'")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include deactivated users')
@with_appcontext
def list_users(include_inactive):
    """List users with their role and active status."""
    query = db.session.query(User)
    if not include_inactive:
        query = query.filter_by(is_active=True)

    users = query.order_by(User.username).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Username':<20} {'Role':<14} {'Active':<8} {'Overrides'}")
    click.echo("="*70)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        overrides = ", ".join(sorted(user.feature_permissions or {})) or "none"
        click.echo(f"{user.id:<5} {user.username:<20} {user.role:<14} {active_str:<8} {overrides}")

    click.echo("="*70 + "\n")


@users_group.command('set-role')
@click.argument('username')
@click.argument('role', type=click.Choice(ROLES))
@with_appcontext
def set_role_cli(username, role):
    """Change a user's role."""
    user = _get_user_or_fail(username)
    if not user:
        return
    identity_service.set_role(user.id, role)
    click.echo(f"PASS {username} is now '{role}'")


@users_group.command('deactivate')
@click.argument('username')
@with_appcontext
def deactivate_cli(username):
    """Deactivate a user; their tokens stop working on the next request."""
    user = _get_user_or_fail(username)
    if not user:
        return
    identity_service.set_active(user.id, False)
    click.echo(f"PASS Deactivated {username}")


# =============================================================================
# TOKENS
# =============================================================================

@click.group('tokens')
def tokens_group():
    """Bearer token commands."""


@tokens_group.command('issue')
@click.argument('username')
@click.option('--password', prompt=True, hide_input=True, help='Password')
@click.option('--expires-minutes', type=float, default=None, help='Override JWT_EXPIRE_MINUTES')
@with_appcontext
def issue_token_cli(username, password, expires_minutes):
    """Verify a user's password and print a bearer token for them."""
    user = db.session.query(User).filter_by(username=username).first()
    if not user or not verify_password(password, user.password_hash):
        click.echo("FAIL Invalid username or password")
        return
    if not user.is_active:
        click.echo(f"FAIL User '{username}' is deactivated")
        return

    token = token_service.create_access_token(user.id, role=user.role, expires_minutes=expires_minutes)
    click.echo(token)


# =============================================================================
# PRODUCTS
# =============================================================================

@click.group('products')
def products_group():
    """Catalogue commands."""


@products_group.command('create')
@click.option('--sku', required=True, help='Unique SKU')
@click.option('--name', required=True, help='Display name')
@click.option('--base-unit', default='piece', show_default=True, help='Unit stock is kept in')
@click.option('--category', default=None, help='Catalogue category')
@click.option('--supplier-id', type=int, default=None, help='Supplier ID')
@click.option('--reorder-point', type=float, default=0, show_default=True, help='Reorder point (base units)')
@click.option('--opening-stock', type=float, default=0, show_default=True, help='Opening balance (base units)')
@with_appcontext
def create_product_cli(sku, name, base_unit, category, supplier_id, reorder_point, opening_stock):
    """Create a product; its opening balance goes through the stock ledger."""
    if not (math.isfinite(reorder_point) and math.isfinite(opening_stock)):
        click.echo("FAIL Reorder point and opening stock must be finite numbers")
        return
    if not unit_conversion.is_valid_unit(base_unit):
        click.echo(f"FAIL Unknown unit: {base_unit}")
        return
    if db.session.query(Product.id).filter_by(sku=sku).first():
        click.echo(f"FAIL SKU '{sku}' already exists")
        return

    product = Product(
        sku=sku,
        name=name,
        base_unit=unit_conversion.normalize_unit(base_unit),
        category=category,
        supplier_id=supplier_id,
        reorder_point=reorder_point,
    )
    db.session.add(product)
    db.session.commit()

    if opening_stock:
        result = movement_service.record_movement(product.id, "opening", opening_stock)
        click.echo(f"PASS Opening balance {result.new_stock:g} booked as {result.movement.movement_number}")

    click.echo(f"PASS Created product {sku} (ID: {product.id})")


# =============================================================================
# INSPECTION
# =============================================================================

@click.group('units')
def units_group():
    """Measurement unit commands."""


@units_group.command('list')
@click.option('--type', 'unit_type', type=click.Choice(unit_conversion.UNIT_TYPES), default=None)
def list_units_cli(unit_type):
    """List measurement units and their base multipliers."""
    for unit in unit_conversion.list_units():
        if unit_type and unit["type"] != unit_type:
            continue
        click.echo(f"{unit['name']:<10} {unit['type']:<8} 1 = {unit['base_multiplier']:g} {unit['base_unit']}")


@click.group('sequences')
def sequences_group():
    """Document counter commands."""


@sequences_group.command('peek')
@click.argument('document_type')
@click.option('--date', 'on', type=click.DateTime(formats=["%Y-%m-%d"]), default=None, help='Counter day (default today, UTC)')
@with_appcontext
def peek_sequence_cli(document_type, on: datetime | None):
    """Show the last value issued for a document type on a day (0 if none yet)."""
    counter_name = sequence_service.counter_name_for(document_type, on)
    click.echo(f"{counter_name}: {sequence_service.peek_value(counter_name)}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(tokens_group)
    app.cli.add_command(products_group)
    app.cli.add_command(units_group)
    app.cli.add_command(sequences_group)
