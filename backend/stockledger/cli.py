# Overview: Flask CLI command groups for bootstrap and ledger inspection.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Ledger bootstrap/inspection:
# - python -m flask ledger init-db
#   Create all tables (dev only; use `flask db upgrade` for real databases).
# - python -m flask ledger seed-vendor --name "Green Leaf" --location "Main Store"
#   Create a vendor with its primary location.
# - python -m flask ledger verify [--inventory-id 12]
#   Check that every inventory quantity equals the sum of its movements.
#
# Session inspection:
# - python -m flask sessions list --status open --limit 20
#   List recent POS sessions.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Inventory, Location, Vendor
from .models.sessions import SESSION_STATUS_CLOSED, SESSION_STATUS_OPEN
from .precision import format_price, format_quantity
from .services import session_service, stock_ledger


@click.group('ledger')
def ledger_group():
    """Ledger bootstrap and consistency commands."""


@ledger_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables for the current models."""
    db.create_all()
    click.echo("PASS Tables created")


@ledger_group.command('seed-vendor')
@click.option('--name', required=True, help='Vendor name')
@click.option('--location', 'location_name', default='Main Store', help='Primary location name')
@with_appcontext
def seed_vendor(name, location_name):
    """
    Create a vendor and its primary location.

    Example:
        flask ledger seed-vendor --name "Green Leaf" --location "Main Store"
    """
    vendor = Vendor(name=name)
    db.session.add(vendor)
    db.session.flush()

    location = Location(vendor_id=vendor.id, name=location_name, is_primary=True)
    db.session.add(location)
    db.session.commit()

    click.echo(f"PASS Vendor {vendor.id} ({vendor.name}) with primary location {location.id} ({location.name})")


@ledger_group.command('verify')
@click.option('--inventory-id', type=int, help='Check a single inventory row')
@with_appcontext
def verify(inventory_id):
    """
    Recompute quantities from stock movements and report mismatches.

    Exits with status 1 if any row is inconsistent.
    """
    if inventory_id:
        ids = [inventory_id]
    else:
        ids = [row_id for (row_id,) in db.session.query(Inventory.id).order_by(Inventory.id).all()]

    if not ids:
        click.echo("No inventory rows found.")
        return

    failures = 0
    for row_id in ids:
        report = stock_ledger.verify_ledger(row_id)
        if report["consistent"]:
            continue
        failures += 1
        click.echo(
            f"FAIL Inventory {row_id}: cached {format_quantity(report['quantity'])}, "
            f"ledger {format_quantity(report['ledger_quantity'])}"
        )

    if failures:
        click.echo(f"FAIL {failures} of {len(ids)} inventory rows inconsistent")
        raise SystemExit(1)

    click.echo(f"PASS {len(ids)} inventory rows consistent")


@click.group('sessions')
def sessions_group():
    """POS session inspection commands."""


@sessions_group.command('list')
@click.option('--status', type=click.Choice([SESSION_STATUS_OPEN, SESSION_STATUS_CLOSED]), help='Filter by status')
@click.option('--limit', type=int, default=20, help='Max sessions to show')
@with_appcontext
def list_sessions_cli(status, limit):
    """
    List POS sessions.

    Example:
        flask sessions list
        flask sessions list --status open
    """
    sessions = session_service.list_sessions(status=status, limit=limit)

    if not sessions:
        click.echo("No sessions found.")
        return

    click.echo("\n" + "="*110)
    click.echo(f"{'ID':<5} {'Number':<16} {'Register':<14} {'User':<12} {'Status':<8} {'Sales':<12} {'Variance':<10}")
    click.echo("="*110)

    for session in sessions:
        variance_str = "-"
        if session.cash_variance is not None:
            variance_str = format_price(session.cash_variance)

        click.echo(
            f"{session.id:<5} {session.session_number:<16} {session.register_id:<14} "
            f"{session.user_id:<12} {session.status:<8} {format_price(session.total_sales):<12} {variance_str:<10}"
        )

    click.echo("="*110 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(ledger_group)
    app.cli.add_command(sessions_group)
