# Overview: Flask CLI command groups for bootstrap, tenant setup and stock reconciliation.

# backend/posledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Tenant management:
# - python -m flask tenants list
# - python -m flask tenants create --name "Corner Shop" --code "CORNER"
#
# Suppliers:
# - python -m flask suppliers create --tenant CORNER --name "Acme Wholesale" --phone "01700000000"
#
# Stock reconciliation:
# - python -m flask stock check --tenant CORNER
#   Compare each product's quantity with the sum of its batches; exits 1 on any mismatch.

import sys

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Organization, Product, Supplier
from .services.product_service import find_inconsistent_products
from .services.supplier_service import SupplierValidationError, create_supplier
from .services.tenant_service import TenantAccessError, create_tenant, resolve_tenant


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables (existing tables are left alone)."""
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

    click.echo("PASS Database reset complete. Run 'python -m flask tenants create' to add a tenant.")


# =============================================================================

@click.group('tenants')
def tenants_group():
    """Tenant (organization) management commands."""


@tenants_group.command('list')
@with_appcontext
def list_tenants():
    """List all tenants."""
    orgs = db.session.query(Organization).order_by(Organization.id).all()

    if not orgs:
        click.echo("No tenants found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Active':<8} {'Products':<9} {'Suppliers'}")
    click.echo("="*80)

    for org in orgs:
        product_count = db.session.query(Product).filter_by(org_id=org.id).count()
        supplier_count = db.session.query(Supplier).filter_by(org_id=org.id).count()
        active_str = "Yes" if org.is_active else "No"

        click.echo(f"{org.id:<5} {org.name:<30} {org.code:<15} {active_str:<8} {product_count:<9} {supplier_count}")

    click.echo("="*80 + "\n")


@tenants_group.command('create')
@click.option('--name', required=True, help='Tenant name')
@click.option('--code', required=True, help='Short code used in the X-Tenant-Code header (unique)')
@with_appcontext
def create_tenant_cli(name, code):
    """Create a new tenant."""
    try:
        org = create_tenant(name=name, code=code)
    except TenantAccessError as e:
        click.echo(f"FAIL {e}")
        sys.exit(1)

    click.echo(f"PASS Created tenant: {org.name} (ID: {org.id}, Code: {org.code})")


# =============================================================================

@click.group('suppliers')
def suppliers_group():
    """Supplier bootstrap commands."""


@suppliers_group.command('create')
@click.option('--tenant', 'tenant_code', required=True, help='Tenant code')
@click.option('--name', required=True, help='Supplier name')
@click.option('--phone', required=True, help='Supplier phone')
@click.option('--address', default=None, help='Supplier address')
@with_appcontext
def create_supplier_cli(tenant_code, name, phone, address):
    """Create a supplier for a tenant."""
    try:
        org = resolve_tenant(tenant_code)
        supplier = create_supplier(org_id=org.id, name=name, phone=phone, address=address)
    except (TenantAccessError, SupplierValidationError) as e:
        click.echo(f"FAIL {e}")
        sys.exit(1)

    click.echo(f"PASS Created supplier: {supplier.name} (ID: {supplier.id}, Tenant: {org.code})")


# =============================================================================

@click.group('stock')
def stock_group():
    """Stock inspection commands."""


@stock_group.command('check')
@click.option('--tenant', 'tenant_code', required=True, help='Tenant code')
@with_appcontext
def check_stock(tenant_code):
    """Report products whose quantity differs from their batch ledger."""
    try:
        org = resolve_tenant(tenant_code)
    except TenantAccessError as e:
        click.echo(f"FAIL {e}")
        sys.exit(1)

    mismatches = find_inconsistent_products(org.id)
    if not mismatches:
        click.echo(f"PASS All products in {org.code} match their batch ledger.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<6} {'Code':<8} {'Name':<40} {'Qty':<8} {'Ledger'}")
    click.echo("="*80)
    for row in mismatches:
        click.echo(
            f"{row['product_id']:<6} {row['code']:<8} {row['name'][:40]:<40} "
            f"{row['quantity']:<8} {row['ledger_quantity']}"
        )
    click.echo("="*80 + "\n")
    click.echo(f"FAIL {len(mismatches)} product(s) out of sync")
    sys.exit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(tenants_group)
    app.cli.add_command(suppliers_group)
    app.cli.add_command(stock_group)
