# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/stockroom/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Category tree:
# - python -m flask categories seed
#   Create the default category tree if the table is empty.
# - python -m flask categories tree
#   Print the category tree with ids.
#
# Inspection:
# - python -m flask items list --status partially_out --limit 50
#   List items with quantities and status.
# - python -m flask borrows overdue [--as-of 2026-11-01]
#   List open borrows past their expected return date.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Category
from .services import category_service, item_service, outbound_service
from .services.item_service import ITEM_STATUSES
from .time_utils import parse_iso_date


# (name, is_stackable, children)
DEFAULT_CATEGORY_TREE = [
    ("Robots", False, [
        ("Dexterous Hands", False, []),
        ("Mobile Robots", False, []),
        ("Robot Arms", False, []),
    ]),
    ("Sensors", False, [
        ("Cameras", False, []),
        ("Lidar", False, []),
    ]),
    ("Consumables", True, [
        ("Cables", True, []),
        ("Fasteners", True, []),
    ]),
]


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

    click.echo("PASS Database reset complete. Run 'python -m flask categories seed' to add default categories.")


@click.group('categories')
def categories_group():
    """Category tree commands."""


def _seed_nodes(nodes, parent_id=None):
    created = 0
    for sort_order, (name, stackable, children) in enumerate(nodes):
        category = category_service.create_category(
            name=name,
            parent_id=parent_id,
            sort_order=sort_order,
            is_stackable=stackable,
        )
        created += 1 + _seed_nodes(children, category.id)
    return created


@categories_group.command('seed')
@with_appcontext
def seed_categories():
    """Create the default category tree (skipped if any category exists)."""
    if db.session.query(Category).count() > 0:
        click.echo("SKIP Categories already exist; nothing seeded.")
        return

    created = _seed_nodes(DEFAULT_CATEGORY_TREE)
    click.echo(f"PASS Seeded {created} categories.")


def _echo_tree(nodes, depth=0):
    for node in nodes:
        flag = " [stackable]" if node["is_stackable"] else ""
        click.echo(f"{'  ' * depth}- {node['name']} (ID: {node['id']}){flag}")
        _echo_tree(node["children"], depth + 1)


@categories_group.command('tree')
@with_appcontext
def show_tree():
    """Print the category tree."""
    tree = category_service.list_tree()
    if not tree:
        click.echo("No categories found.")
        return
    _echo_tree(tree)


@click.group('items')
def items_group():
    """Item inspection commands."""


@items_group.command('list')
@click.option('--category-id', type=int, default=None, help='Filter by category')
@click.option('--status', type=click.Choice(ITEM_STATUSES), default=None, help='Filter by status')
@click.option('--limit', type=int, default=50, show_default=True)
@with_appcontext
def list_items(category_id, status, limit):
    """List items with quantities and status."""
    page = item_service.list_items(category_id=category_id, status=status, page=1, limit=limit)
    if not page.rows:
        click.echo("No items found.")
        return

    click.echo(f"\n{'ID':<6} {'Code':<16} {'Name':<30} {'Qty':>6} {'In':>6} {'Out':>6}  Status")
    click.echo("-" * 90)
    for item in page.rows:
        click.echo(
            f"{item.id:<6} {(item.unique_code or '-'):<16} {item.name[:30]:<30} "
            f"{item.current_quantity:>6} {item.total_in:>6} {item.total_out:>6}  {item.status}"
        )
    click.echo(f"\nShowing {len(page.rows)} of {page.total} items.")


@click.group('borrows')
def borrows_group():
    """Borrow tracking commands."""


@borrows_group.command('overdue')
@click.option('--as-of', default=None, help='ISO date to compare against (default: today)')
@with_appcontext
def overdue(as_of):
    """List open borrows past their expected return date."""
    try:
        cutoff = parse_iso_date(as_of) if as_of else None
    except ValueError:
        raise click.BadParameter("must be an ISO-8601 date", param_hint="--as-of")

    rows = outbound_service.list_overdue_borrows(cutoff)
    if not rows:
        click.echo("No overdue borrows.")
        return

    click.echo(f"\n{'ID':<6} {'Item':<30} {'Qty':>5}  {'Borrower':<20} {'Due':<10}")
    click.echo("-" * 80)
    for r in rows:
        name = r.item.name if r.item else (r.unique_code_snapshot or "(deleted)")
        click.echo(
            f"{r.id:<6} {name[:30]:<30} {r.quantity:>5}  {(r.borrower_name or '')[:20]:<20} "
            f"{r.expected_return_date.isoformat():<10}"
        )
    click.echo(f"\n{len(rows)} overdue borrow(s).")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(categories_group)
    app.cli.add_command(items_group)
    app.cli.add_command(borrows_group)
