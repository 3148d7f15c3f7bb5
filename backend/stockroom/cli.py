# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/stockroom/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to stockroom (PowerShell: $env:FLASK_APP="stockroom").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Create a few demo items and customers and commit sample sales (skipped if items exist).
#
# Inventory inspection:
# - python -m flask inventory low-stock [--threshold 5]
#   List items below the low-stock threshold (LOW_STOCK_THRESHOLD by default).

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import AppError
from .extensions import db
from .models import InventoryItem
from .services import customer_service, inventory_service, sales_service

DEMO_ITEMS = [
    {"name": "Widget", "description": "Standard widget", "category": "Hardware", "quantity": 40, "price_cents": 500},
    {"name": "Gadget", "description": "Pocket gadget", "category": "Hardware", "quantity": 25, "price_cents": 1250},
    {"name": "Cable", "description": "USB-C cable, 1m", "category": "Accessories", "quantity": 8, "price_cents": 899},
]

DEMO_CUSTOMERS = [
    {"name": "Ada Lovelace", "address": "12 Analytical Row", "mobile": "5550100", "email": "ada@example.com"},
    {"name": "Alan Turing", "address": "1 Bletchley Park", "mobile": "5550101"},
]


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

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' for sample data.")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Create demo items, customers and two sales."""
    if db.session.query(InventoryItem).count() > 0:
        click.echo("SKIP Inventory is not empty; demo data not loaded.")
        return

    try:
        items = [inventory_service.create_item(dict(data), created_by="seed") for data in DEMO_ITEMS]
        customers = [customer_service.create_customer(dict(data), created_by="seed") for data in DEMO_CUSTOMERS]

        sales_service.create_sale(
            [{"item_id": items[0].id, "quantity": 3}, {"item_id": items[1].id, "quantity": 1}],
            customer_id=customers[0].id,
            payment_method="credit",
            created_by="seed",
        )
        sales_service.create_sale(
            [{"item_id": items[2].id, "quantity": 2}],
            created_by="seed",
        )
    except AppError as exc:
        raise click.ClickException(exc.message)

    click.echo(f"PASS Seeded {len(items)} items, {len(customers)} customers and 2 sales.")


@click.group('inventory')
def inventory_group():
    """Inventory inspection commands."""


@inventory_group.command('low-stock')
@click.option('--threshold', type=int, default=None, help='Override LOW_STOCK_THRESHOLD')
@with_appcontext
def low_stock_cli(threshold):
    """
    List items below the low-stock threshold.

    Example:
        flask inventory low-stock
        flask inventory low-stock --threshold 5
    """
    if threshold is None:
        threshold = current_app.config["LOW_STOCK_THRESHOLD"]

    items = inventory_service.low_stock_items(threshold)
    if not items:
        click.echo(f"No items below {threshold}.")
        return

    click.echo("\n" + "=" * 70)
    click.echo(f"{'ID':<6} {'Name':<30} {'Category':<20} {'Qty':>6}")
    click.echo("=" * 70)
    for item in items:
        click.echo(f"{item.id:<6} {item.name[:30]:<30} {(item.category or '-')[:20]:<20} {item.quantity:>6}")
    click.echo("=" * 70)
    click.echo(f"{len(items)} item(s) below {threshold}.\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
