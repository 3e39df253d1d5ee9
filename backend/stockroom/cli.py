# Overview: Flask CLI command groups for bootstrap, inspection, and repair.

# backend/stockroom/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalog:
# - python -m flask catalog seed-categories
#   Create the default categories when none exist.
# - python -m flask catalog repair-cascade "Old Name" "New Name"
#   Re-run a category rename cascade (idempotent).
#
# Stock:
# - python -m flask stock alerts
#   List low-stock and out-of-stock products grouped by category.
#
# Orders:
# - python -m flask orders reconcile <order_id>
#   Run (or resume) stock deduction for a completed order.
# - python -m flask orders reconcile --all-completed
#   Reconcile every completed order whose stock is not yet deducted.
#
# Capability inspection:
# - python -m flask perms list [--role manager] [--category INVENTORY]
# - python -m flask perms check staff canDeleteItems

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import OrderStatus
from .permissions import (
    DEFAULT_ROLE_PERMISSIONS,
    PERMISSION_DEFINITIONS,
    get_permissions_by_category,
    is_known_role,
    validate_permission_code,
)
from .services import category_service, order_service, reconciliation_service
from .services.category_service import CascadeIncompleteError
from .services.document_store import StoreError
from .services.permission_service import SYSTEM, RolePermissionProvider
from .services.runtime import inventory
from .services.stock_status import alerts_by_category
from .validation import ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


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

    inventory.reset()
    click.echo("PASS Database reset complete. Run 'python -m flask catalog seed-categories' to add defaults.")


@click.group('catalog')
def catalog_group():
    """Category maintenance."""


@catalog_group.command('seed-categories')
@with_appcontext
def seed_categories_cli():
    """Create the default category set if no category exists yet."""
    created = category_service.seed_default_categories(permissions=SYSTEM)
    if not created:
        click.echo("SKIP Categories already exist; nothing seeded")
        return
    for category in created:
        click.echo(f"   {category.name:<20} {category.color}")
    click.echo(f"PASS Seeded {len(created)} categories")


@catalog_group.command('repair-cascade')
@click.argument('old_name')
@click.argument('new_name')
@with_appcontext
def repair_cascade_cli(old_name, new_name):
    """Rewrite every product still carrying OLD_NAME to NEW_NAME."""
    try:
        result = category_service.cascade_category_rename(
            old_name=old_name,
            new_name=new_name,
            permissions=SYSTEM,
        )
    except ValidationError as e:
        for field_name, message in e.errors.items():
            click.echo(f"FAIL {field_name}: {message}")
        raise SystemExit(1)
    except CascadeIncompleteError as e:
        click.echo(f"FAIL {e}")
        for product_id in e.result.failed:
            click.echo(f"   failed: {product_id}")
        raise SystemExit(1)

    click.echo(f"PASS {len(result.updated)} product(s) moved from '{old_name}' to '{new_name}'")


@click.group('stock')
def stock_group():
    """Stock level inspection."""


@stock_group.command('alerts')
@with_appcontext
def stock_alerts_cli():
    """List low-stock and out-of-stock products by category."""
    groups = alerts_by_category(inventory.view())
    if not groups:
        click.echo("PASS No stock alerts")
        return

    click.echo(f"\n{'='*80}")
    click.echo("Stock alerts")
    click.echo(f"{'='*80}\n")

    for group in groups:
        click.echo(f"{group.name} ({group.total})")
        for product in group.out_of_stock:
            click.echo(f"   OUT  {product.sku:<20} {product.name:<35} 0 / {product.low_stock_threshold}")
        for product in group.low_stock:
            click.echo(
                f"   LOW  {product.sku:<20} {product.name:<35} {product.stock} / {product.low_stock_threshold}"
            )
    click.echo("")


@click.group('orders')
def orders_group():
    """Order maintenance."""


@orders_group.command('reconcile')
@click.argument('order_id', required=False)
@click.option('--all-completed', is_flag=True, help='Reconcile every completed order not yet deducted')
@with_appcontext
def reconcile_cli(order_id, all_completed):
    """Deduct stock for completed orders (safe to repeat)."""
    if not order_id and not all_completed:
        click.echo("FAIL Give an ORDER_ID or --all-completed")
        raise SystemExit(2)

    if all_completed:
        order_ids = [
            o.id for o in order_service.list_orders(status=OrderStatus.COMPLETED)
            if not o.stock_deducted
        ]
    else:
        order_ids = [order_id]

    failures = 0
    for oid in order_ids:
        try:
            result = reconciliation_service.reconcile_order_stock(order_id=oid, permissions=SYSTEM)
        except reconciliation_service.OrderNotFoundError:
            click.echo(f"FAIL Order {oid} not found")
            failures += 1
            continue
        except StoreError as e:
            click.echo(f"FAIL Order {oid}: {e}")
            failures += 1
            continue

        if result.already_applied:
            click.echo(f"SKIP Order {oid}: stock already deducted")
            continue
        click.echo(f"PASS Order {oid}: {len(result.applied)} line(s) deducted, {len(result.skipped)} skipped")
        for line in result.skipped:
            click.echo(f"   skipped line {line.index}: {line.product_id} ({line.reason})")

    if not order_ids:
        click.echo("PASS Nothing to reconcile")
    if failures:
        raise SystemExit(1)


@click.group('perms')
def perms_group():
    """Capability inspection commands."""


@perms_group.command('list')
@click.option('--role', help='Filter by role name')
@click.option('--category', help='Filter by category')
def list_permissions_cli(role, category):
    """List all capabilities, optionally filtered by role or category."""
    if role:
        if not is_known_role(role):
            click.echo(f"FAIL Role '{role}' not found")
            return
        codes = set(DEFAULT_ROLE_PERMISSIONS[role])
        perms = [p for p in PERMISSION_DEFINITIONS if p[0] in codes]
        title = f"Capabilities for role: {role.upper()}"
    elif category:
        perms = get_permissions_by_category(category)
        title = f"Capabilities in category: {category}"
    else:
        perms = list(PERMISSION_DEFINITIONS)
        title = "All capabilities"

    click.echo(f"\n{'='*80}")
    click.echo(title)
    click.echo(f"{'='*80}\n")

    click.echo(f"{'Code':<30} {'Name':<35} {'Category'}")
    click.echo("-"*80)
    for code, name, _description, perm_category in perms:
        click.echo(f"{code:<30} {name:<35} {perm_category}")

    click.echo(f"\n Total: {len(perms)} capabilities\n")


@perms_group.command('check')
@click.argument('role')
@click.argument('permission_code')
def check_permission_cli(role, permission_code):
    """Check if a role grants a specific capability."""
    if not is_known_role(role):
        click.echo(f"FAIL Role '{role}' not found")
        return
    if not validate_permission_code(permission_code):
        click.echo(f"FAIL Unknown capability '{permission_code}'")
        return

    if RolePermissionProvider(role).has_permission(permission_code):
        click.echo(f"PASS Role '{role}' HAS capability '{permission_code}'")
    else:
        click.echo(f"FAIL Role '{role}' DOES NOT HAVE capability '{permission_code}'")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(orders_group)
    app.cli.add_command(perms_group)
