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
#   Create any missing tables (idempotent; prefer "flask db upgrade" in production).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Store credit:
# - python -m flask credits list [--email jane@example.com]
#   List discount codes with their remaining balance.
# - python -m flask credits purge-expired
#   Delete codes whose expiry date has passed.
#
# Stock:
# - python -m flask stock low [--threshold 10]
#   List products that are running low (in stock, below threshold).

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .money import format_cents
from .services import stock_service, store_credit_service


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

    click.echo("PASS Database reset complete.")


@click.group('credits')
def credits_group():
    """Store credit (discount code) inspection and cleanup."""


@credits_group.command('list')
@click.option('--email', 'customer_email', help='Filter by customer email')
@with_appcontext
def list_credits(customer_email):
    """List discount codes and their remaining balance."""
    codes = store_credit_service.list_credits(customer_email=customer_email)
    if not codes:
        click.echo("No discount codes found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'CODE':<30} {'EMAIL':<35} {'AMOUNT':>10} {'EXPIRES':<12}")
    click.echo("="*100)
    for dc in codes:
        expires = dc.expires_at.strftime("%Y-%m-%d") if dc.expires_at else "never"
        click.echo(f"{dc.code:<30} {dc.customer_email:<35} {format_cents(dc.amount_cents):>10} {expires:<12}")
    click.echo("="*100 + "\n")


@credits_group.command('purge-expired')
@with_appcontext
def purge_expired_credits():
    """Delete discount codes whose expiry date has passed."""
    removed = store_credit_service.purge_expired()
    current_app.logger.info("Purged %s expired discount codes", removed)
    click.echo(f"PASS Removed {removed} expired discount code(s).")


@click.group('stock')
def stock_group():
    """Stock level inspection."""


@stock_group.command('low')
@click.option('--threshold', type=int, default=None, help='Low stock threshold (default: LOW_STOCK_THRESHOLD)')
@with_appcontext
def low_stock(threshold):
    """List products with 0 < stock < threshold."""
    if threshold is None:
        threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 10)
    products = stock_service.low_stock_products(threshold=threshold)
    if not products:
        click.echo(f"No products below {threshold} units.")
        return

    for p in products:
        click.echo(f"{p.sku:<20} {p.product_name:<40} {p.stock_quantity:>5}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(credits_group)
    app.cli.add_command(stock_group)
