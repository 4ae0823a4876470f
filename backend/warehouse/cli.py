# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/warehouse/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--email admin@warehouse.local] [--password "Password123!"]
#   Idempotent bootstrap: creates tables and the default admin account.
# - python -m flask system seed-sample
#   Load the sample suppliers and products (skips names that already exist).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list [--role staff]
#   List all profiles with role and password-setup state.
# - python -m flask users create --username jane --email jane@warehouse.local --password "Password123!" --role staff
#   Create an identity and its profile (prompts if options are omitted).
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions
#   Delete expired or revoked session tokens older than 30 days.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product, Profile, Supplier
from .services.identity_service import (
    IdentityError,
    PasswordValidationError,
    delete_identity,
    sign_up,
)
from .services.records import DEFAULT_ROLE_PERMISSIONS, ROLE_ADMIN, ROLES
from .services.session_service import cleanup_expired_sessions


SAMPLE_SUPPLIERS = [
    ("TechParts Ltd", "John Smith", "orders@techparts.com", "+1-555-0123", "123 Industrial Blvd, Tech City"),
    ("Steel Works Inc", "Maria Garcia", "sales@steelworks.com", "+1-555-0456", "456 Steel Avenue, Metal Town"),
    ("Safety First Corp", "David Wilson", "info@safetyfirst.com", "+1-555-0789", "789 Safety Street, Guard City"),
    ("Industrial Fluids Co", "Sarah Brown", "orders@industrialfluids.com", "+1-555-0321", "321 Fluid Lane, Liquid Valley"),
]

# name, sku, category, quantity, stock_alert, unit, supplier name
SAMPLE_PRODUCTS = [
    ("Industrial Bearings", "IB-001", "Machinery Parts", 150, 50, "pieces", "TechParts Ltd"),
    ("Steel Pipes (2m)", "SP-002", "Construction", 25, 30, "pieces", "Steel Works Inc"),
    ("Safety Helmets", "SH-003", "Safety Equipment", 75, 20, "pieces", "Safety First Corp"),
    ("Hydraulic Oil (5L)", "HO-004", "Fluids", 12, 15, "bottles", "Industrial Fluids Co"),
]


def _create_account(username, email, password, role, must_set_password=False) -> Profile:
    """Identity + profile; the identity is removed again if the profile fails."""
    identity = sign_up(email, password)
    profile = Profile(
        user_id=identity.id,
        username=username,
        email=identity.email,
        role=role,
        permissions=list(DEFAULT_ROLE_PERMISSIONS[role]),
        must_set_password=must_set_password,
    )
    db.session.add(profile)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        delete_identity(identity.id)
        raise
    return profile


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--username', default='admin', show_default=True, help='Admin username')
@click.option('--email', default='admin@warehouse.local', show_default=True, help='Admin email')
@click.option('--password', default='Password123!', show_default=True, help='Admin password')
@with_appcontext
def init_system(username, email, password):
    """
    Initialize the warehouse system: tables and the default admin account.

    Safe to run repeatedly; an existing admin profile is left untouched.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing warehouse system...")

    db.create_all()
    click.echo("PASS Tables ready")

    existing = db.session.query(Profile).filter_by(role=ROLE_ADMIN).first()
    if existing:
        click.echo(f"WARN  Admin '{existing.username}' already exists, skipping...")
    else:
        try:
            _create_account(username, email, password, ROLE_ADMIN)
            click.echo(f"PASS Created admin: {username} ({email})")
        except (PasswordValidationError, IdentityError) as e:
            click.echo(f"FAIL Could not create admin: {str(e)}")
            return

    click.echo("\n" + "="*60)
    click.echo("DONE Warehouse System Initialized Successfully!")
    click.echo("="*60)
    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    click.echo(f"   {username} -> {email} / {password}")
    click.echo("")


@system_group.command('seed-sample')
@with_appcontext
def seed_sample():
    """Load sample suppliers and products for local development."""
    suppliers_by_name = {}
    created_suppliers = 0
    for name, contact, email, phone, address in SAMPLE_SUPPLIERS:
        supplier = db.session.query(Supplier).filter_by(name=name).first()
        if supplier is None:
            supplier = Supplier(
                name=name,
                contact_person=contact,
                email=email,
                phone=phone,
                address=address,
            )
            db.session.add(supplier)
            created_suppliers += 1
        suppliers_by_name[name] = supplier
    db.session.flush()

    created_products = 0
    for name, sku, category, quantity, stock_alert, unit, supplier_name in SAMPLE_PRODUCTS:
        if db.session.query(Product).filter_by(name=name).first():
            continue
        db.session.add(Product(
            name=name,
            sku=sku,
            category=category,
            quantity=quantity,
            stock_alert=stock_alert,
            unit=unit,
            supplier_id=suppliers_by_name[supplier_name].id,
        ))
        created_products += 1

    db.session.commit()
    click.echo(f"PASS Seeded {created_suppliers} suppliers, {created_products} products")


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


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), prompt=True, help='Role')
@click.option('--must-set-password', is_flag=True, help='Force password setup on first login')
@with_appcontext
def create_user_cli(username, email, password, role, must_set_password):
    """
    Create a new user interactively.

    Password must be at least 8 characters.
    """
    try:
        profile = _create_account(username, email, password, role, must_set_password)
        click.echo(f"PASS Created user: {profile.username} ({profile.email}) with role '{role}'")
        click.echo("SECURITY Password securely hashed with bcrypt")

    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
    except IdentityError as e:
        click.echo(f"FAIL {str(e)}")
    except Exception as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")


@users_group.command('list')
@click.option('--role', type=click.Choice(list(ROLES)), help='Filter by role')
@with_appcontext
def list_users(role):
    """List all users with their roles."""
    query = db.session.query(Profile).order_by(Profile.created_at)

    if role:
        query = query.filter_by(role=role)

    profiles = query.all()

    if not profiles:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'Username':<20} {'Email':<30} {'Role':<8} {'Setup':<7} {'Last login'}")
    click.echo("="*90)

    for profile in profiles:
        setup_str = "Yes" if profile.must_set_password else "No"
        last_login = profile.last_login.strftime("%Y-%m-%d %H:%M") if profile.last_login else "never"
        click.echo(f"{profile.username:<20} {profile.email:<30} {profile.role:<8} {setup_str:<7} {last_login}")

    click.echo("="*90 + "\n")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions_cli():
    """Delete expired or revoked session tokens older than 30 days."""
    removed = cleanup_expired_sessions()
    click.echo(f"PASS Removed {removed} session tokens")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)
